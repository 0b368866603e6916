"""Research agent engine: data sources, scoped memory and agent contracts."""

from .agent import AgentRun, AgentStatus, FormatterConfig, LLMCallMode, PromptTemplate, ResearchAgent
from .memory import Memory, MemoryScope
from .sources import AgentDataConfig, DataSource, DataSourceAggregator, MemorySource, ResolvedBundle

__all__ = [
    "AgentDataConfig",
    "AgentRun",
    "AgentStatus",
    "DataSource",
    "DataSourceAggregator",
    "FormatterConfig",
    "LLMCallMode",
    "Memory",
    "MemoryScope",
    "MemorySource",
    "PromptTemplate",
    "ResearchAgent",
    "ResolvedBundle",
]
