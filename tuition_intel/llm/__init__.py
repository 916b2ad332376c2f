"""LiteLLM client used for the optional AI verification review."""

from .llm_client import LLMClient, LLMResponse, LLMTask

__all__ = ["LLMClient", "LLMResponse", "LLMTask"]
