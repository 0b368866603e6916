"""Architecture researcher combining earlier findings with local documentation."""

from __future__ import annotations

from ..agent import LLMCallMode, PromptTemplate, ResearchAgent
from ..memory import MemoryScope
from ..sources import AgentDataConfig, DataSource, MemorySource
from ..types import ArchitectureReport

SYSTEM_PROMPT = """You are a software architect reviewing an existing system.

Describe the architecture style, its layers and the components in each layer,
the key decisions that shaped it and the cross-cutting concerns it handles.
Base every statement on the system context and domain modules you are given.
When local technical documentation is available, cite the document a decision
comes from."""

OPENING_INSTRUCTION = "Summarise the architecture of this project from the research below:"

CLOSING_INSTRUCTION = """
## Output requirements
- Name one dominant architecture style
- Layers list the domain modules or components they contain
- Decisions carry a short rationale and, when known, the document they come from
- List risks the current structure introduces"""


class ArchitectureResearcher(ResearchAgent):
    output_model = ArchitectureReport

    @property
    def agent_type(self) -> str:
        return "architecture"

    @property
    def memory_scope_key(self) -> str:
        return MemoryScope.STUDIES_RESEARCH

    def data_config(self) -> AgentDataConfig:
        return AgentDataConfig(
            required_sources=frozenset(
                {
                    MemorySource(MemoryScope.STUDIES_RESEARCH, "system_context"),
                    MemorySource(MemoryScope.STUDIES_RESEARCH, "domain_modules"),
                }
            ),
            optional_sources=frozenset({DataSource.LOCAL_DOCS}),
        )

    def prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            system_prompt=SYSTEM_PROMPT,
            opening_instruction=OPENING_INSTRUCTION,
            closing_instruction=CLOSING_INSTRUCTION,
            llm_call_mode=LLMCallMode.EXTRACT,
        )
