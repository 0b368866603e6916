"""Built-in research agents."""

from __future__ import annotations

from typing import Iterable, List

from ..agent import ResearchAgent
from .architecture import ArchitectureResearcher
from .domain_modules import DomainModulesDetector
from .key_modules import KeyModulesInsight
from .system_context import SystemContextResearcher


def default_agents(enabled: Iterable[str] | None = None) -> List[ResearchAgent]:
    """Built-in agents in registration order, optionally filtered by agent type."""
    agents: List[ResearchAgent] = [
        SystemContextResearcher(),
        DomainModulesDetector(),
        ArchitectureResearcher(),
        KeyModulesInsight(),
    ]
    if not enabled:
        return agents
    wanted = set(enabled)
    unknown = wanted - {agent.agent_type for agent in agents}
    if unknown:
        raise ValueError(f"Unknown research agents: {', '.join(sorted(unknown))}")
    return [agent for agent in agents if agent.agent_type in wanted]


__all__ = [
    "ArchitectureResearcher",
    "DomainModulesDetector",
    "KeyModulesInsight",
    "SystemContextResearcher",
    "default_agents",
]
