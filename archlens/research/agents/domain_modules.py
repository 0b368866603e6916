"""Detects domain modules from extracted insights and dependency usage."""

from __future__ import annotations

from typing import Any

from ..agent import LLMCallMode, PromptTemplate, ResearchAgent
from ..memory import MemoryScope
from ..sources import AgentDataConfig, DataSource, MemorySource
from ..types import DomainModulesReport

SYSTEM_PROMPT = """You are a domain modelling specialist.

Group the code base into cohesive domain modules. A domain module owns a clear
set of responsibilities and a set of code paths; modules depend on one another
through the dependencies observed in the code. Prefer business domains over
technical layers when the evidence supports them."""

OPENING_INSTRUCTION = "Identify the domain modules of this project from the materials below:"

CLOSING_INSTRUCTION = """
## Output requirements
- Every module lists the code paths that belong to it, using paths exactly as given
- Dependencies between modules reference module names you defined
- Rate importance from 0 to 10
- Describe the main business flows that cross module boundaries"""


class DomainModulesDetector(ResearchAgent):
    output_model = DomainModulesReport

    @property
    def agent_type(self) -> str:
        return "domain_modules"

    @property
    def memory_scope_key(self) -> str:
        return MemoryScope.STUDIES_RESEARCH

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required_sources=frozenset({DataSource.CODE_INSIGHTS, DataSource.DEPENDENCY_ANALYSIS}),
            optional_sources=frozenset({MemorySource(MemoryScope.STUDIES_RESEARCH, "system_context")}),
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=SYSTEM_PROMPT,
            opening_instruction=OPENING_INSTRUCTION,
            closing_instruction=CLOSING_INSTRUCTION,
            llm_call_mode=LLMCallMode.EXTRACT,
        )

    def post_process(self, output: Any, context) -> Any:
        # Modules are reported most important first.
        modules = output.get("domain_modules", [])
        modules.sort(key=lambda module: (-float(module.get("importance", 0.0)), module.get("name", "")))
        return output
