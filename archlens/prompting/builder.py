"""Composes reasoning-service prompts from agent templates and resolved bundles."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel

from ..research.agent import FormatterConfig, LLMCallMode, PromptTemplate
from ..research.sources import ResolvedBundle

_TEMPLATE_NAME = "research.j2"


@dataclass(frozen=True)
class ComposedPrompt:
    """System and user messages ready for the reasoning service."""

    system: str
    user: str


class PromptComposer:
    """Renders an agent's template around its resolved sources."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = self._create_env(self.templates_dir)

    def compose(
        self,
        template: PromptTemplate,
        bundle: ResolvedBundle,
        *,
        output_model: Optional[Type[BaseModel]] = None,
    ) -> ComposedPrompt:
        formatter = template.formatter_config
        schema = None
        if template.llm_call_mode is LLMCallMode.EXTRACT and output_model is not None:
            schema = json.dumps(output_model.model_json_schema(), indent=formatter.json_indent, sort_keys=True)

        rendered = self._env.get_template(_TEMPLATE_NAME).render(
            opening_instruction=template.opening_instruction.strip(),
            closing_instruction=template.closing_instruction.strip(),
            sections=self._sections(bundle, formatter),
            include_source_keys=formatter.include_source_keys,
            max_chars=formatter.max_chars_per_source,
            missing_optional=bundle.missing_optional,
            output_schema=schema,
        )
        return ComposedPrompt(system=template.system_prompt.strip(), user=rendered.strip() + "\n")

    @staticmethod
    def _sections(bundle: ResolvedBundle, formatter: FormatterConfig) -> List[Dict[str, Any]]:
        sections: List[Dict[str, Any]] = []
        for key in sorted(bundle.values):
            body = render_value(bundle.values[key], indent=formatter.json_indent)
            truncated = len(body) > formatter.max_chars_per_source
            if truncated:
                body = body[: formatter.max_chars_per_source]
            sections.append({"key": key, "body": body, "truncated": truncated})
        return sections

    @staticmethod
    def _create_env(templates_dir: Path) -> Environment:
        default_dir = Path(__file__).with_name("templates")
        directories = [str(templates_dir)]
        if templates_dir != default_dir:
            directories.append(str(default_dir))
        loader = FileSystemLoader(directories)
        return Environment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )


def render_value(value: Any, *, indent: int = 2) -> str:
    """Text form of a source value: strings verbatim, everything else as JSON."""
    if isinstance(value, str):
        return value.strip()
    return json.dumps(value, indent=indent, sort_keys=True, default=str)


__all__ = ["ComposedPrompt", "PromptComposer", "render_value"]
