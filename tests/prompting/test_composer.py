"""Tests for prompt composition."""

from __future__ import annotations

from pathlib import Path

from archlens.prompting import PromptComposer
from archlens.prompting.builder import render_value
from archlens.research.agent import FormatterConfig, LLMCallMode, PromptTemplate
from archlens.research.sources import ResolvedBundle
from archlens.research.types import ArchitectureReport


def _template(**overrides) -> PromptTemplate:
    values = {
        "system_prompt": "  You are an architect.  ",
        "opening_instruction": "Study these materials:",
        "closing_instruction": "Answer precisely.",
    }
    values.update(overrides)
    return PromptTemplate(**values)


def test_sections_are_rendered_in_key_order() -> None:
    bundle = ResolvedBundle(
        values={"readme_content": "# Shop", "code_insights": [{"path": "a.py"}]},
        missing_optional=["confluence_pages"],
    )

    prompt = PromptComposer().compose(_template(llm_call_mode=LLMCallMode.PROMPT), bundle)

    assert prompt.system == "You are an architect."
    user = prompt.user
    assert user.startswith("Study these materials:")
    assert user.index("## Source: code_insights") < user.index("## Source: readme_content")
    assert '"path": "a.py"' in user
    assert "Unavailable optional sources: confluence_pages" in user
    assert user.rstrip().endswith("Answer precisely.")
    assert "Response schema" not in user


def test_same_bundle_renders_identically() -> None:
    first = ResolvedBundle(values={"b": {"y": 1, "x": 2}, "a": "text"})
    second = ResolvedBundle(values={"a": "text", "b": {"x": 2, "y": 1}})
    composer = PromptComposer()

    assert composer.compose(_template(), first) == composer.compose(_template(), second)


def test_long_sources_are_truncated() -> None:
    bundle = ResolvedBundle(values={"readme_content": "x" * 50})
    template = _template(formatter_config=FormatterConfig(max_chars_per_source=10))

    user = PromptComposer().compose(template, bundle).user

    assert "x" * 10 in user
    assert "x" * 11 not in user
    assert "[truncated to 10 characters]" in user


def test_source_keys_can_be_hidden() -> None:
    bundle = ResolvedBundle(values={"readme_content": "# Shop"})
    template = _template(formatter_config=FormatterConfig(include_source_keys=False))

    user = PromptComposer().compose(template, bundle).user

    assert "## Source:" not in user
    assert "# Shop" in user


def test_extract_mode_appends_output_schema() -> None:
    bundle = ResolvedBundle(values={"readme_content": "# Shop"})

    user = PromptComposer().compose(_template(), bundle, output_model=ArchitectureReport).user

    assert "## Response schema" in user
    assert '"architecture_style"' in user


def test_custom_templates_directory_overrides_default(tmp_path: Path) -> None:
    (tmp_path / "research.j2").write_text("CUSTOM {{ opening_instruction }}\n", encoding="utf-8")

    prompt = PromptComposer(tmp_path).compose(_template(), ResolvedBundle(values={"a": "b"}))

    assert prompt.user == "CUSTOM Study these materials:\n"


def test_render_value() -> None:
    assert render_value("  text \n") == "text"
    assert render_value({"b": 1, "a": [1]}, indent=0) == '{\n"a": [\n1\n],\n"b": 1\n}'
