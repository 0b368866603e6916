"""CLI entrypoints for archlens commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import ArchLensConfig, ConfigError, load_config
from .context import GeneratorContext
from .integrations.knowledge_sync import KnowledgeSyncer
from .llm.runner import LLMRunner
from .logging import configure_logging, get_logger
from .research.agents import default_agents
from .research.memory import MemoryScope
from .research.orchestrator import ResearchOrchestrator
from .research.sources import DataSource


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archlens",
        description="Extract code structure and research the architecture of a repository.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write DEBUG logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    research_parser = subparsers.add_parser(
        "research",
        help="Run extraction and every research agent against a repository.",
    )
    _add_verbose_option(research_parser, suppress_default=True)
    _add_path_argument(research_parser)
    research_parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore cached agent results and do not write new ones.",
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help="Print the per-file dependency and interface insights as JSON.",
    )
    _add_verbose_option(extract_parser, suppress_default=True)
    _add_path_argument(extract_parser)

    sync_parser = subparsers.add_parser(
        "sync-knowledge",
        help="Ingest configured documentation into the local knowledge cache.",
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument(
        "--force",
        action="store_true",
        help="Re-ingest documentation even when nothing changed since the last sync.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for archlens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    root = Path(args.path).expanduser().resolve()
    if not root.is_dir():
        parser.exit(1, f"Repository path not found: {args.path}\n")
    config = _load_config(root)

    if args.command == "research":
        _run_research(parser, root, config, use_cache=not bool(getattr(args, "no_cache", False)))
    elif args.command == "extract":
        _run_extract(parser, root, config)
    elif args.command == "sync-knowledge":
        _run_sync(config, force=bool(getattr(args, "force", False)))
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_research(
    parser: argparse.ArgumentParser, root: Path, config: ArchLensConfig, *, use_cache: bool
) -> None:
    syncer = KnowledgeSyncer(config)
    try:
        if syncer.should_sync():
            syncer.sync_all()
    except OSError as exc:
        get_logger("cli").warning("Knowledge sync failed; continuing with cached knowledge: %s", exc)

    try:
        runner = LLMRunner.from_config(config.llm)
        agents = default_agents(config.research.agents or None)
        context = GeneratorContext.build(root, config, runner, use_cache=use_cache)
        summary = ResearchOrchestrator(context, agents).run()
    except ValueError as exc:
        parser.exit(1, f"archlens research failed: {exc}\n")
    except Exception as exc:  # pragma: no cover - defensive guard
        parser.exit(1, f"archlens research failed: {exc}\nRun with --verbose for more details.\n")

    for run in summary.runs:
        detail = ""
        if run.cache_hit:
            detail = " (cached)"
        elif run.missing_sources:
            detail = f" (missing: {', '.join(run.missing_sources)})"
        elif run.error:
            detail = f" ({run.error})"
        print(f"{run.agent_type}: {run.status.value}{detail}")
    if summary.report_path is not None:
        print(f"Research report written to {_relativize(summary.report_path)}")


def _run_extract(parser: argparse.ArgumentParser, root: Path, config: ArchLensConfig) -> None:
    try:
        context = GeneratorContext.build(root, config, None, use_cache=False)
    except ValueError as exc:
        parser.exit(1, f"archlens extract failed: {exc}\n")
    payload = {
        "root": context.manifest.root,
        "files": [insight.to_payload() for insight in context.insights],
        "dependencies": context.get_from_memory(MemoryScope.PREPROCESS, DataSource.DEPENDENCY_ANALYSIS.value),
    }
    print(json.dumps(payload, indent=2))


def _run_sync(config: ArchLensConfig, *, force: bool) -> None:
    syncer = KnowledgeSyncer(config)
    if not force and not syncer.should_sync():
        print("Knowledge cache is up to date")
        return
    if syncer.sync_all():
        status = syncer.status()
        print(f"Synced {status['documents']} documents into {_relativize(syncer.cache_dir())}")
    else:
        print("No enabled knowledge sources to sync")


def _load_config(root: Path) -> ArchLensConfig:
    try:
        return load_config(root)
    except ConfigError as exc:
        get_logger("cli").warning("%s; falling back to defaults", exc)
        return ArchLensConfig(root=root)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
