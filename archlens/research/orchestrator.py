"""Dependency-ordered execution of research agents."""

from __future__ import annotations

import hashlib
import json
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import networkx as nx

from ..context import GeneratorContext
from ..logging import get_logger
from ..prompting.builder import PromptComposer
from ..stores.cache import CachedResult, fingerprint, write_atomic
from .agent import AgentRun, AgentStatus, LLMCallMode, PromptTemplate, ResearchAgent
from .sources import DataSourceAggregator, ResolvedBundle

REPORT_FILENAME = "research_report.json"


@dataclass
class ResearchSummary:
    """Outcome of one research run, in execution order."""

    runs: List[AgentRun]
    memory_usage: Dict[str, int] = field(default_factory=dict)
    cache_stats: Dict[str, int] = field(default_factory=dict)
    report_path: Optional[Path] = None

    @property
    def counts(self) -> Dict[str, int]:
        return dict(Counter(run.status.value for run in self.runs))

    def run_for(self, agent_type: str) -> Optional[AgentRun]:
        return next((run for run in self.runs if run.agent_type == agent_type), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agents": [run.to_dict() for run in self.runs],
            "counts": self.counts,
            "memory_usage": self.memory_usage,
            "cache": self.cache_stats,
        }


class ResearchOrchestrator:
    """Runs agents level by level over the graph of memory reads and writes.

    An edge ``writer -> reader`` exists when ``reader`` declares a memory source
    that ``writer`` commits. Agents in the same topological generation cannot
    observe each other and run concurrently.
    """

    def __init__(
        self,
        context: GeneratorContext,
        agents: Sequence[ResearchAgent],
        *,
        composer: PromptComposer | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.context = context
        self.agents = list(agents)
        self.composer = composer or PromptComposer()
        self.max_workers = max(1, max_workers or context.config.research.max_workers)
        self.aggregator = DataSourceAggregator(context, max_workers=self.max_workers)
        self.logger = get_logger("research")
        self._index = {agent.agent_type: position for position, agent in enumerate(self.agents)}
        if len(self._index) != len(self.agents):
            raise ValueError("Research agents must have unique agent types")
        self.graph = self._build_graph()

    def execution_order(self) -> List[ResearchAgent]:
        return [agent for level in self.execution_levels() for agent in level]

    def execution_levels(self) -> List[List[ResearchAgent]]:
        by_type = {agent.agent_type: agent for agent in self.agents}
        return [
            [by_type[name] for name in sorted(generation, key=self._index.__getitem__)]
            for generation in nx.topological_generations(self.graph)
        ]

    def run(self) -> ResearchSummary:
        runs: Dict[str, AgentRun] = {}
        levels = self.execution_levels()
        self.logger.info("Running %d research agents in %d levels", len(self.agents), len(levels))
        for level in levels:
            if self.max_workers == 1 or len(level) == 1:
                results = [self._run_agent(agent) for agent in level]
            else:
                workers = min(self.max_workers, len(level))
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="archlens-agent") as pool:
                    results = list(pool.map(self._run_agent, level))
            for run in results:
                runs[run.agent_type] = run

        ordered = [runs[agent.agent_type] for level in levels for agent in level]
        summary = ResearchSummary(
            runs=ordered,
            memory_usage=self.context.get_memory_stats(),
            cache_stats=self.context.cache.stats(),
        )
        summary.report_path = self._write_report(summary)
        self.logger.info(
            "Research finished: %s",
            ", ".join(f"{status}={count}" for status, count in sorted(summary.counts.items())),
        )
        return summary

    # ------------------------------------------------------------------
    # Per-agent lifecycle

    def _run_agent(self, agent: ResearchAgent) -> AgentRun:
        run = AgentRun(agent.agent_type)
        try:
            self._execute(agent, run)
        except Exception as exc:
            self._log_exception(f"Research agent {agent.agent_type} failed", exc)
            if not run.is_terminal:
                run.fail(f"{type(exc).__name__}: {exc}")
        return run

    def _execute(self, agent: ResearchAgent, run: AgentRun) -> None:
        run.advance(AgentStatus.SOURCES_RESOLVING)
        bundle = self.aggregator.resolve(agent.data_config())
        if bundle.blocked:
            run.missing_sources = list(bundle.missing_required)
            run.advance(AgentStatus.BLOCKED)
            self.logger.warning(
                "Agent %s blocked; missing required sources: %s",
                agent.agent_type,
                ", ".join(bundle.missing_required),
            )
            return

        template = agent.prompt_template()
        prompt = self.composer.compose(template, bundle, output_model=agent.output_model)
        run.fingerprint = fingerprint(
            agent_identity(agent), bundle.serialize(), template_version(template, agent)
        )
        run.advance(AgentStatus.PROMPT_READY)

        synced_at = self.context.knowledge_synced_at()
        cached = self.context.cache.lookup(run.fingerprint, knowledge_synced_at=synced_at)
        if cached is not None:
            self.logger.debug("Cache hit for %s", agent.agent_type)
            run.cache_hit = True
            self._commit(agent, run, cached.output)
            return

        run.advance(AgentStatus.INVOKING)
        self.logger.info("Invoking reasoning service for %s", agent.agent_type)
        try:
            raw = self.context.reasoning.invoke(
                prompt.user,
                template.llm_call_mode,
                template.formatter_config,
                system=prompt.system,
            )
            output = validate_output(agent, template, raw)
        except Exception as exc:
            # Service and validation errors stay with this agent; dependents block on its absence.
            self.logger.warning("Agent %s failed: %s", agent.agent_type, exc)
            run.fail(f"{type(exc).__name__}: {exc}")
            return
        run.advance(AgentStatus.SUCCEEDED)
        self._commit(agent, run, output, bundle=bundle, synced_at=synced_at)

    def _commit(
        self,
        agent: ResearchAgent,
        run: AgentRun,
        output: Any,
        *,
        bundle: ResolvedBundle | None = None,
        synced_at: datetime | None = None,
    ) -> None:
        processed = agent.post_process(output, self.context)
        self.context.store_to_memory(agent.memory_scope_key, agent.memory_key, processed)
        if bundle is not None and run.fingerprint is not None:
            self.context.cache.store(
                run.fingerprint,
                CachedResult(
                    agent=agent.agent_type,
                    fingerprint=run.fingerprint,
                    output=output,
                    knowledge_synced_at=synced_at.isoformat() if synced_at else None,
                    source_files=sorted(set(bundle.source_files)),
                ),
            )
        run.output = processed
        run.advance(AgentStatus.COMMITTED)
        self.logger.debug("Committed %s to %s/%s", agent.agent_type, agent.memory_scope_key, agent.memory_key)

    # ------------------------------------------------------------------
    # Internal helpers

    def _build_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        writers: Dict[Tuple[str, str], str] = {}
        for agent in self.agents:
            graph.add_node(agent.agent_type)
            writers[(agent.memory_scope_key, agent.memory_key)] = agent.agent_type
        for agent in self.agents:
            for source in agent.data_config().memory_sources():
                writer = writers.get((source.scope, source.key))
                if writer is not None:
                    graph.add_edge(writer, agent.agent_type)
        if not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph)
            path = " -> ".join(edge[0] for edge in cycle)
            raise ValueError(f"Research agents form a dependency cycle: {path}")
        return graph

    def _write_report(self, summary: ResearchSummary) -> Optional[Path]:
        report_path = self.context.config.internal_path / REPORT_FILENAME
        payload = summary.to_dict()
        payload["generated_at"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        try:
            write_atomic(report_path, json.dumps(payload, indent=2, sort_keys=True))
        except OSError:  # pragma: no cover - filesystem guard
            self.logger.debug("Unable to write research report", exc_info=True)
            return None
        return report_path

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)


def agent_identity(agent: ResearchAgent) -> str:
    cls = type(agent)
    return f"{agent.agent_type}:{cls.__module__}.{cls.__qualname__}"


def template_version(template: PromptTemplate, agent: ResearchAgent) -> str:
    """Version tag plus a digest of every prompt input, so edited templates never hit."""
    digest = hashlib.sha256()
    parts = [
        template.system_prompt,
        template.opening_instruction,
        template.closing_instruction,
        template.llm_call_mode.value,
        repr(template.formatter_config),
    ]
    if agent.output_model is not None:
        parts.append(json.dumps(agent.output_model.model_json_schema(), sort_keys=True))
    for part in parts:
        digest.update(part.encode("utf-8"))
        digest.update(b"\0")
    return f"{template.version}:{digest.hexdigest()[:16]}"


def validate_output(agent: ResearchAgent, template: PromptTemplate, raw: Any) -> Any:
    """Check a service answer against the agent's expected shape; raises ValueError."""
    if template.llm_call_mode is LLMCallMode.PROMPT:
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError("Expected a non-empty text answer")
        return raw.strip()
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a JSON object, got {type(raw).__name__}")
    if agent.output_model is None:
        return raw
    return agent.output_model.model_validate(raw).model_dump(mode="json")


__all__ = [
    "REPORT_FILENAME",
    "ResearchOrchestrator",
    "ResearchSummary",
    "agent_identity",
    "template_version",
    "validate_output",
]
