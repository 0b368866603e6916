"""Tests for the agent lifecycle record and the built-in agents."""

from __future__ import annotations

import pytest

from archlens.research.agent import AgentRun, AgentStatus, LLMCallMode
from archlens.research.agents import default_agents
from archlens.research.agents.domain_modules import DomainModulesDetector
from archlens.research.memory import MemoryScope
from archlens.research.sources import DataSource, MemorySource


def test_run_follows_the_happy_path() -> None:
    run = AgentRun("system_context")
    for status in (
        AgentStatus.SOURCES_RESOLVING,
        AgentStatus.PROMPT_READY,
        AgentStatus.INVOKING,
        AgentStatus.SUCCEEDED,
        AgentStatus.COMMITTED,
    ):
        run.advance(status)

    assert run.is_terminal
    assert run.history[0] is AgentStatus.PENDING
    assert run.to_dict()["history"] == [
        "pending",
        "sources_resolving",
        "prompt_ready",
        "invoking",
        "succeeded",
        "committed",
    ]


@pytest.mark.parametrize(
    "path",
    [
        [AgentStatus.INVOKING],
        [AgentStatus.SOURCES_RESOLVING, AgentStatus.INVOKING],
        [AgentStatus.SOURCES_RESOLVING, AgentStatus.BLOCKED, AgentStatus.PROMPT_READY],
        [AgentStatus.SOURCES_RESOLVING, AgentStatus.PROMPT_READY, AgentStatus.SUCCEEDED],
    ],
)
def test_illegal_transitions_raise(path) -> None:
    run = AgentRun("architecture")
    with pytest.raises(RuntimeError, match="Illegal transition"):
        for status in path:
            run.advance(status)


def test_terminal_runs_cannot_fail_again() -> None:
    run = AgentRun("architecture")
    run.advance(AgentStatus.SOURCES_RESOLVING)
    run.fail("boom")

    assert run.status is AgentStatus.FAILED
    assert run.error == "boom"
    with pytest.raises(RuntimeError):
        run.fail("again")


def test_default_agents_in_registration_order() -> None:
    assert [agent.agent_type for agent in default_agents()] == [
        "system_context",
        "domain_modules",
        "architecture",
        "key_modules",
    ]


def test_default_agents_filter_and_reject_unknown() -> None:
    assert [agent.agent_type for agent in default_agents(["architecture"])] == ["architecture"]
    with pytest.raises(ValueError, match="Unknown research agents: nope"):
        default_agents(["architecture", "nope"])


def test_built_in_agents_write_where_they_read() -> None:
    agents = {agent.agent_type: agent for agent in default_agents()}

    assert agents["key_modules"].memory_scope_key == MemoryScope.DOCUMENTATION
    assert agents["key_modules"].prompt_template().llm_call_mode is LLMCallMode.PROMPT
    assert agents["system_context"].prompt_template().llm_call_mode is LLMCallMode.EXTRACT
    architecture_sources = agents["architecture"].data_config().required_sources
    assert MemorySource(MemoryScope.STUDIES_RESEARCH, "system_context") in architecture_sources
    assert MemorySource(MemoryScope.STUDIES_RESEARCH, "domain_modules") in architecture_sources
    assert DataSource.LOCAL_DOCS in agents["architecture"].data_config().optional_sources


def test_domain_modules_sorted_by_importance() -> None:
    output = {
        "domain_modules": [
            {"name": "b", "importance": 2.0},
            {"name": "a", "importance": 2.0},
            {"name": "c", "importance": 8.0},
        ]
    }

    processed = DomainModulesDetector().post_process(output, context=None)

    assert [module["name"] for module in processed["domain_modules"]] == ["c", "a", "b"]
