"""LLM provider abstraction module."""

from agentmem.providers.base import LLMProvider, LLMResponse

__all__ = ["LLMProvider", "LLMResponse"]
