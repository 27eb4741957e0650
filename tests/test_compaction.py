"""Tests for transcript compaction."""

import itertools
from unittest.mock import AsyncMock

import pytest

from agentmem.agent.compactor import CompactionError, CompactionPolicy
from agentmem.agent.summarizer import SummarizationError
from agentmem.config.schema import CompactionConfig
from agentmem.session.transcript import Transcript


def _make_transcript(tmp_path) -> Transcript:
    counter = itertools.count(1)
    transcript = Transcript(
        tmp_path / "s.jsonl", count_tokens=len, id_factory=lambda: f"e{next(counter)}",
    )
    transcript.init()
    return transcript


def _add_messages(transcript: Transcript, count: int, start: int = 0) -> None:
    """Append alternating user/assistant messages of exactly 10 tokens each."""
    for i in range(start, start + count):
        content = f"message {i:02d}"
        if i % 2 == 0:
            transcript.add_user_message(content)
        else:
            transcript.add_assistant_message(content)


def _make_policy(keep_recent=25, context_window=100, reserve=10, soft=20) -> CompactionPolicy:
    return CompactionPolicy(
        context_window=context_window,
        reserve_tokens=reserve,
        soft_threshold_tokens=soft,
        keep_recent_tokens=keep_recent,
        count_tokens=len,
    )


# ── thresholds ──────────────────────────────────────────────────


class TestThresholds:
    def test_threshold_formula(self):
        assert _make_policy().threshold == 70

    def test_below_threshold(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        transcript.add_user_message("x" * 69)
        policy = _make_policy()
        assert policy.needs_compaction(transcript) is False
        assert policy.needs_memory_flush(transcript) is False

    def test_at_threshold(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        transcript.add_user_message("x" * 70)
        policy = _make_policy()
        assert policy.needs_compaction(transcript) is True
        assert policy.needs_memory_flush(transcript) is True

    def test_only_recent_tokens_count(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        transcript.add_user_message("x" * 500)
        transcript.add_compaction("short", ["e1"])
        assert _make_policy().needs_compaction(transcript) is False

    def test_from_config(self):
        policy = CompactionPolicy.from_config(CompactionConfig())
        assert policy.context_window == 100_000
        assert policy.keep_recent_tokens == 20_000
        assert policy.threshold == 86_000


# ── find_cut_point ──────────────────────────────────────────────


class TestFindCutPoint:
    def test_cut_after_overflowing_entry(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        assert _make_policy(keep_recent=25).find_cut_point(transcript.entries) == 4

    def test_exact_fit_is_kept(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        assert _make_policy(keep_recent=30).find_cut_point(transcript.entries) == 3

    def test_everything_fits(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        assert _make_policy(keep_recent=1000).find_cut_point(transcript.entries) == 0

    def test_format_for_summary_skips_non_messages(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        transcript.add_user_message("hi")
        transcript.add_tool_call("ls", {})
        transcript.add_tool_result("files")
        transcript.add_assistant_message("done")
        text = CompactionPolicy.format_for_summary(transcript.entries)
        assert text == "user: hi\n\nassistant: done"


# ── compact ─────────────────────────────────────────────────────


class TestCompact:
    @pytest.mark.asyncio
    async def test_compacts_older_entries(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        summarizer = AsyncMock(return_value="short")

        result = await _make_policy(keep_recent=25).compact(transcript, summarizer)

        summarizer.assert_awaited_once_with(
            "user: message 00\n\nassistant: message 01\n\n"
            "user: message 02\n\nassistant: message 03"
        )
        assert result.summary == "short"
        assert result.removed_entry_count == 4
        assert result.tokens_saved == 35
        assert result.new_total_tokens == 5

        boundary = transcript.entries[-1]
        assert boundary.type == "compaction"
        assert boundary.content == "short"
        assert boundary.metadata == {
            "removedEntryIds": ["e1", "e2", "e3", "e4"],
            "removedCount": 4,
        }
        assert transcript.compaction_count == 1
        assert transcript.entry_count == 7

    @pytest.mark.asyncio
    async def test_compaction_persists(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        await _make_policy().compact(transcript, AsyncMock(return_value="short"))

        fresh = Transcript(transcript.path, count_tokens=len)
        assert [e.type for e in fresh.get_recent_entries()] == ["compaction"]
        assert fresh.build_conversation_history() == [
            {"role": "assistant", "content": "[Previous conversation summary]\nshort"},
        ]

    @pytest.mark.asyncio
    async def test_too_few_entries_is_noop(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 4)
        before = transcript.path.read_text()
        summarizer = AsyncMock(return_value="s")

        assert await _make_policy(keep_recent=5).compact(transcript, summarizer) is None
        summarizer.assert_not_awaited()
        assert transcript.path.read_text() == before

    @pytest.mark.asyncio
    async def test_cut_at_one_is_noop(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 5)
        before = transcript.path.read_text()
        summarizer = AsyncMock(return_value="s")

        assert await _make_policy(keep_recent=40).compact(transcript, summarizer) is None
        summarizer.assert_not_awaited()
        assert transcript.path.read_text() == before

    @pytest.mark.asyncio
    async def test_everything_fits_is_noop(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 8)
        assert await _make_policy(keep_recent=1000).compact(
            transcript, AsyncMock(return_value="s")
        ) is None
        assert transcript.compaction_count == 0

    @pytest.mark.asyncio
    async def test_no_messages_to_summarize_is_noop(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        for _ in range(4):
            transcript.add_tool_result("r" * 10)
        _add_messages(transcript, 2)
        summarizer = AsyncMock(return_value="s")

        assert await _make_policy(keep_recent=25).compact(transcript, summarizer) is None
        summarizer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tool_entries_left_out_of_summary_text(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        transcript.add_user_message("message 00")
        transcript.add_tool_result("r" * 10)
        _add_messages(transcript, 4, start=2)
        summarizer = AsyncMock(return_value="s")

        result = await _make_policy(keep_recent=25).compact(transcript, summarizer)

        summarizer.assert_awaited_once_with(
            "user: message 00\n\nuser: message 02\n\nassistant: message 03"
        )
        assert result.removed_entry_count == 4

    @pytest.mark.asyncio
    async def test_second_compaction_skips_previous_summary(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        transcript.add_compaction("s" * 10, [])
        _add_messages(transcript, 5)
        summarizer = AsyncMock(return_value="again")

        result = await _make_policy(keep_recent=25).compact(transcript, summarizer)

        summarizer.assert_awaited_once_with(
            "user: message 00\n\nassistant: message 01\n\nuser: message 02"
        )
        assert result.removed_entry_count == 4
        assert transcript.compaction_count == 2
        assert transcript.get_recent_entries()[0].content == "again"

    @pytest.mark.asyncio
    async def test_missing_transcript_raises(self):
        with pytest.raises(CompactionError):
            await _make_policy().compact(None, AsyncMock(return_value="s"))

    @pytest.mark.asyncio
    async def test_missing_summarizer_raises(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        with pytest.raises(CompactionError):
            await _make_policy().compact(transcript, None)

    @pytest.mark.asyncio
    async def test_summarizer_failure_propagates(self, tmp_path):
        transcript = _make_transcript(tmp_path)
        _add_messages(transcript, 6)
        before = transcript.path.read_text()
        summarizer = AsyncMock(side_effect=SummarizationError("LLM down"))

        with pytest.raises(SummarizationError):
            await _make_policy().compact(transcript, summarizer)
        assert transcript.path.read_text() == before
        assert transcript.compaction_count == 0
