"""Structured report models produced by the research agents."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Report(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ExternalSystem(_Report):
    name: str
    description: str = ""
    interaction_type: str = ""


class SystemContextReport(_Report):
    """C4 system-context view of the analysed project."""

    project_name: str
    project_description: str
    project_type: str = ""
    business_value: str = ""
    target_users: List[str] = Field(default_factory=list)
    usage_scenarios: List[str] = Field(default_factory=list)
    external_systems: List[ExternalSystem] = Field(default_factory=list)
    system_boundary: List[str] = Field(default_factory=list)
    documentation_gaps: List[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=10.0)


class DomainModule(_Report):
    name: str
    description: str = ""
    code_paths: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    depends_on: List[str] = Field(default_factory=list)
    importance: float = Field(default=0.0, ge=0.0, le=10.0)


class DomainModulesReport(_Report):
    """Business or technical domains discovered in the code base."""

    domain_modules: List[DomainModule]
    business_flows: List[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=10.0)


class ArchitectureLayer(_Report):
    name: str
    description: str = ""
    components: List[str] = Field(default_factory=list)


class ArchitectureDecision(_Report):
    title: str
    rationale: str = ""
    source: Optional[str] = None


class ArchitectureReport(_Report):
    """Container-level architecture summary with the decisions behind it."""

    architecture_style: str
    summary: str = ""
    layers: List[ArchitectureLayer] = Field(default_factory=list)
    key_decisions: List[ArchitectureDecision] = Field(default_factory=list)
    cross_cutting_concerns: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=10.0)


__all__ = [
    "ArchitectureDecision",
    "ArchitectureLayer",
    "ArchitectureReport",
    "DomainModule",
    "DomainModulesReport",
    "ExternalSystem",
    "SystemContextReport",
]
