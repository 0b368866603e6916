"""Researcher for project objectives and system boundaries."""

from __future__ import annotations

from ..agent import LLMCallMode, PromptTemplate, ResearchAgent
from ..memory import MemoryScope
from ..sources import AgentDataConfig, DataSource
from ..types import SystemContextReport

SYSTEM_PROMPT = """You are a software architecture analyst focused on project objectives and system boundaries.

From the project information provided, determine:
1. The core objectives of the project and the value it delivers
2. The project type and its technical characteristics
3. Target users and the scenarios they use it in
4. External systems the project interacts with
5. Where the system boundary lies

External architecture documentation may be included. When it is, use it to ground
business context and established decisions, check the code findings against it,
and record any gap between the documentation and the implementation."""

OPENING_INSTRUCTION = (
    "Using the research materials below, analyse the core objectives and the "
    "positioning of this project:"
)

CLOSING_INSTRUCTION = """
## Analysis requirements
- Identify the project type and its technical characteristics precisely
- Name the target users and usage scenarios
- Delineate the system boundary explicitly
- When external documentation is provided, validate the code structure against it
- List gaps between documented architecture and the actual implementation
- Keep the result at the system-context level of the C4 model"""


class SystemContextResearcher(ResearchAgent):
    output_model = SystemContextReport

    @property
    def agent_type(self) -> str:
        return "system_context"

    @property
    def memory_scope_key(self) -> str:
        return MemoryScope.STUDIES_RESEARCH

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required_sources=frozenset({DataSource.PROJECT_STRUCTURE, DataSource.CODE_INSIGHTS}),
            optional_sources=frozenset({DataSource.README_CONTENT, DataSource.CONFLUENCE_PAGES}),
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=SYSTEM_PROMPT,
            opening_instruction=OPENING_INSTRUCTION,
            closing_instruction=CLOSING_INSTRUCTION,
            llm_call_mode=LLMCallMode.EXTRACT,
        )
