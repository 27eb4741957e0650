"""LLM-backed summarizer used by transcript compaction."""

from typing import Awaitable, Callable

from loguru import logger

from agentmem.prompts.compaction import COMPACTION_SYSTEM_PROMPT
from agentmem.providers.base import LLMProvider

# Any async callable turning conversation text into a summary.
Summarizer = Callable[[str], Awaitable[str]]


class SummarizationError(Exception):
    """Raised when the summarizer cannot produce a summary."""


class LLMSummarizer:
    """Summarize conversation text with a chat model.

    Instances are async callables (``await summarizer(text)``), so they can be
    handed to ``CompactionPolicy.compact`` directly. There is no retry; any
    failure surfaces as ``SummarizationError``.
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.3,
    ):
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def __call__(self, text: str) -> str:
        response = await self.provider.chat(
            messages=[
                {"role": "system", "content": COMPACTION_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if response.is_error:
            raise SummarizationError(response.content or "LLM call failed")

        summary = (response.content or "").strip()
        if not summary:
            raise SummarizationError("Empty summary from LLM")

        logger.debug(f"Summarized {len(text)} chars into {len(summary)} chars")
        return summary
