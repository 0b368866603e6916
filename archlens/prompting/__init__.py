"""Prompt composition for research agents."""

from .builder import ComposedPrompt, PromptComposer

__all__ = ["ComposedPrompt", "PromptComposer"]
