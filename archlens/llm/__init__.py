"""Local LLM runner adapters."""

from .runner import LLMRunner, ReasoningServiceError, extract_json_payload

__all__ = ["LLMRunner", "ReasoningServiceError", "extract_json_payload"]
