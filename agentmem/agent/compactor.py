"""Token-budget compaction for session transcripts."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from loguru import logger

from agentmem.agent.summarizer import Summarizer
from agentmem.agent.tokens import estimate_tokens
from agentmem.session.transcript import Transcript, TranscriptEntry

if TYPE_CHECKING:
    from agentmem.config.schema import CompactionConfig


class CompactionError(Exception):
    """Raised when compaction is requested without its prerequisites."""


@dataclass
class CompactionResult:
    """Outcome of a compaction that actually happened."""

    summary: str
    removed_entry_count: int
    tokens_saved: int
    new_total_tokens: int


class CompactionPolicy:
    """
    Decides when and how much of a transcript to summarize.

    All budgets are token counts. Flush and compaction share one threshold,
    ``context_window - reserve_tokens - soft_threshold_tokens``: the flush
    signal is meant for saving important context to daily notes before
    anything gets summarized away, the compaction signal for summarizing.
    """

    MIN_ENTRIES = 5

    def __init__(
        self,
        context_window: int,
        reserve_tokens: int,
        soft_threshold_tokens: int,
        keep_recent_tokens: int,
        count_tokens: Callable[[str], int] = estimate_tokens,
    ):
        self.context_window = context_window
        self.reserve_tokens = reserve_tokens
        self.soft_threshold_tokens = soft_threshold_tokens
        self.keep_recent_tokens = keep_recent_tokens
        self.count_tokens = count_tokens

    @classmethod
    def from_config(
        cls,
        config: "CompactionConfig",
        count_tokens: Callable[[str], int] = estimate_tokens,
    ) -> "CompactionPolicy":
        return cls(
            context_window=config.context_window,
            reserve_tokens=config.reserve_tokens,
            soft_threshold_tokens=config.soft_threshold_tokens,
            keep_recent_tokens=config.keep_recent_tokens,
            count_tokens=count_tokens,
        )

    @property
    def threshold(self) -> int:
        return self.context_window - self.reserve_tokens - self.soft_threshold_tokens

    def needs_memory_flush(self, transcript: Transcript) -> bool:
        """Check if recent context is large enough to flush notes to disk."""
        return transcript.get_recent_tokens() >= self.threshold

    def needs_compaction(self, transcript: Transcript) -> bool:
        """Check if recent context is large enough to compact."""
        return transcript.get_recent_tokens() >= self.threshold

    def find_cut_point(self, entries: list[TranscriptEntry]) -> int:
        """Index of the first entry to keep verbatim.

        Walks from newest to oldest, accumulating token counts; the cut lands
        right after the entry that would push the kept total past
        ``keep_recent_tokens``. Returns 0 when everything fits.
        """
        kept = 0
        for i in range(len(entries) - 1, -1, -1):
            tokens = entries[i].token_count or 0
            if kept + tokens > self.keep_recent_tokens:
                return i + 1
            kept += tokens
        return 0

    @staticmethod
    def format_for_summary(entries: list[TranscriptEntry]) -> str:
        """Role-prefixed message contents separated by blank lines; other kinds skipped."""
        return "\n\n".join(
            f"{e.role}: {e.content}" for e in entries if e.type == "message"
        )

    async def compact(
        self, transcript: Transcript | None, summarizer: Summarizer | None
    ) -> CompactionResult | None:
        """
        Summarize the older part of the recent entries into a compaction entry.

        Args:
            transcript: Active transcript to compact.
            summarizer: Async callable turning conversation text into a summary.

        Returns:
            CompactionResult, or None when there was nothing to compact.

        Raises:
            CompactionError: If the transcript or summarizer is missing.
        """
        if transcript is None:
            raise CompactionError("No active transcript to compact")
        if summarizer is None:
            raise CompactionError("No summarizer configured for compaction")

        recent = transcript.get_recent_entries()
        if len(recent) < self.MIN_ENTRIES:
            logger.debug(f"Compaction skipped: only {len(recent)} recent entries")
            return None

        cut = self.find_cut_point(recent)
        if cut <= 1:
            logger.debug("Compaction skipped: recent entries fit in keep_recent_tokens")
            return None

        to_summarize = recent[:cut]
        kept = recent[cut:]
        text = self.format_for_summary(to_summarize)
        if not text:
            logger.debug("Compaction skipped: no messages among entries to summarize")
            return None

        total_tokens = sum(e.token_count or 0 for e in recent)
        kept_tokens = sum(e.token_count or 0 for e in kept)

        summary = await summarizer(text)
        transcript.add_compaction(summary, [e.id for e in to_summarize])

        tokens_saved = total_tokens - kept_tokens - self.count_tokens(summary)
        result = CompactionResult(
            summary=summary,
            removed_entry_count=len(to_summarize),
            tokens_saved=tokens_saved,
            new_total_tokens=transcript.get_recent_tokens(),
        )
        logger.info(
            f"Compacted {result.removed_entry_count} entries of {transcript.path.name} "
            f"({tokens_saved} tokens saved)"
        )
        return result
