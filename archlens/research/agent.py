"""Research agent contract and per-run lifecycle tracking."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from .sources import AgentDataConfig

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..context import GeneratorContext


class LLMCallMode(str, Enum):
    """How the reasoning service is asked to answer."""

    EXTRACT = "extract"
    PROMPT = "prompt"


@dataclass(frozen=True)
class FormatterConfig:
    """Controls how a resolved bundle is rendered into prompt text and how long the answer may be."""

    include_source_keys: bool = True
    max_chars_per_source: int = 12000
    json_indent: int = 2
    max_output_tokens: Optional[int] = None


@dataclass(frozen=True)
class PromptTemplate:
    system_prompt: str
    opening_instruction: str
    closing_instruction: str
    llm_call_mode: LLMCallMode = LLMCallMode.EXTRACT
    formatter_config: FormatterConfig = field(default_factory=FormatterConfig)
    version: str = "1"


class ResearchAgent(ABC):
    """One analysis step: declares its inputs, its prompt, and where its output lands.

    Agents are stateless; everything they need arrives through the resolved
    bundle and the run context.
    """

    output_model: Optional[Type[BaseModel]] = None

    @property
    @abstractmethod
    def agent_type(self) -> str:
        """Stable identifier used for memory keys, cache identity and reports."""

    @property
    @abstractmethod
    def memory_scope_key(self) -> str:
        """Memory scope the agent's output is committed to."""

    @property
    def memory_key(self) -> str:
        return self.agent_type

    @abstractmethod
    def data_config(self) -> AgentDataConfig:
        """Sources the agent reads."""

    @abstractmethod
    def prompt_template(self) -> PromptTemplate:
        """Prompt pieces and call mode for the reasoning service."""

    def post_process(self, output: Any, context: "GeneratorContext") -> Any:
        """Hook applied to validated output before it is committed."""
        return output

    def __repr__(self) -> str:
        return f"{type(self).__name__}(agent_type={self.agent_type!r})"


class AgentStatus(str, Enum):
    PENDING = "pending"
    SOURCES_RESOLVING = "sources_resolving"
    BLOCKED = "blocked"
    PROMPT_READY = "prompt_ready"
    INVOKING = "invoking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    COMMITTED = "committed"


_TRANSITIONS: Dict[AgentStatus, Tuple[AgentStatus, ...]] = {
    AgentStatus.PENDING: (AgentStatus.SOURCES_RESOLVING,),
    AgentStatus.SOURCES_RESOLVING: (AgentStatus.BLOCKED, AgentStatus.PROMPT_READY, AgentStatus.FAILED),
    # A cache hit commits straight from PROMPT_READY.
    AgentStatus.PROMPT_READY: (AgentStatus.INVOKING, AgentStatus.COMMITTED, AgentStatus.FAILED),
    AgentStatus.INVOKING: (AgentStatus.SUCCEEDED, AgentStatus.FAILED),
    AgentStatus.SUCCEEDED: (AgentStatus.COMMITTED, AgentStatus.FAILED),
    AgentStatus.BLOCKED: (),
    AgentStatus.FAILED: (),
    AgentStatus.COMMITTED: (),
}

TERMINAL_STATUSES = frozenset({AgentStatus.BLOCKED, AgentStatus.FAILED, AgentStatus.COMMITTED})


@dataclass
class AgentRun:
    """Record of a single agent execution within one pipeline run."""

    agent_type: str
    status: AgentStatus = AgentStatus.PENDING
    history: List[AgentStatus] = field(default_factory=lambda: [AgentStatus.PENDING])
    fingerprint: Optional[str] = None
    cache_hit: bool = False
    missing_sources: List[str] = field(default_factory=list)
    error: Optional[str] = None
    output: Any = None

    def advance(self, status: AgentStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise RuntimeError(
                f"Illegal transition for {self.agent_type}: {self.status.value} -> {status.value}"
            )
        self.status = status
        self.history.append(status)

    def fail(self, error: str) -> None:
        self.advance(AgentStatus.FAILED)
        self.error = error

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent_type,
            "status": self.status.value,
            "history": [status.value for status in self.history],
            "fingerprint": self.fingerprint,
            "cache_hit": self.cache_hit,
            "missing_sources": list(self.missing_sources),
            "error": self.error,
        }


__all__ = [
    "AgentRun",
    "AgentStatus",
    "FormatterConfig",
    "LLMCallMode",
    "PromptTemplate",
    "ResearchAgent",
    "TERMINAL_STATUSES",
]
