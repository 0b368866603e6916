"""Free-text walkthrough of the most important modules."""

from __future__ import annotations

from ..agent import FormatterConfig, LLMCallMode, PromptTemplate, ResearchAgent
from ..memory import MemoryScope
from ..sources import AgentDataConfig, DataSource, MemorySource

SYSTEM_PROMPT = """You are a senior engineer onboarding a new team member.

Explain the modules that matter most: what each one is for, the files that
implement it, the interfaces other code calls, and the important notes left in
the code (TODO, FIXME, HACK)."""

OPENING_INSTRUCTION = "Write a technical walkthrough of the key modules using these materials:"

CLOSING_INSTRUCTION = """
## Writing requirements
- Use Markdown with one heading per module
- Reference files by their repository paths
- Keep to facts present in the materials"""


class KeyModulesInsight(ResearchAgent):
    @property
    def agent_type(self) -> str:
        return "key_modules"

    @property
    def memory_scope_key(self) -> str:
        return MemoryScope.DOCUMENTATION

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required_sources=frozenset(
                {
                    DataSource.CODE_INSIGHTS,
                    MemorySource(MemoryScope.STUDIES_RESEARCH, "domain_modules"),
                }
            ),
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=SYSTEM_PROMPT,
            opening_instruction=OPENING_INSTRUCTION,
            closing_instruction=CLOSING_INSTRUCTION,
            llm_call_mode=LLMCallMode.PROMPT,
            formatter_config=FormatterConfig(max_chars_per_source=20000),
        )
