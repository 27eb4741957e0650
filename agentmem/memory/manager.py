"""Memory manager: one entry point over facts, daily notes and sessions."""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from agentmem.agent.compactor import CompactionPolicy, CompactionResult
from agentmem.agent.summarizer import Summarizer
from agentmem.agent.tokens import TokenCounter
from agentmem.memory.daily import DailyLog
from agentmem.memory.facts import FactStore, compile_search_pattern
from agentmem.session.store import SessionMetadata, SessionStore
from agentmem.session.transcript import Transcript, TranscriptEntry

if TYPE_CHECKING:
    from agentmem.config.schema import Config


class NoActiveSessionError(RuntimeError):
    """Raised when a transcript operation needs a session and none is active."""


@dataclass
class SearchResult:
    """A matching line from one of the memory files."""

    file: str
    line: int
    content: str


class MemoryManager:
    """
    Three-tier agent memory rooted at a single storage directory.

    Layout:
        <root>/MEMORY.md                                 # long-term facts
        <root>/memory/YYYY-MM-DD.md                      # daily notes
        <root>/agents/<agent_id>/sessions.json           # session index
        <root>/agents/<agent_id>/sessions/<id>.jsonl     # transcripts

    Session metadata in ``sessions.json`` is re-synced from the active
    transcript after every transcript write.
    """

    def __init__(self, config: "Config | None" = None, summarizer: Summarizer | None = None):
        if config is None:
            from agentmem.config.schema import Config
            config = Config()
        self.config = config
        self.root: Path = config.storage_dir
        self.summarizer = summarizer

        self.tokens = TokenCounter().acquire()
        self.facts = FactStore(config.memory_file, sections=config.sections)
        self.daily = DailyLog(config.daily_dir, sections=config.daily_sections)
        self.sessions = SessionStore(self.root, config.agent_id, count_tokens=self.tokens.count)
        self.policy = CompactionPolicy.from_config(config.compaction, count_tokens=self.tokens.count)

        self.session_id: str | None = None
        self.transcript: Transcript | None = None

    def init(self) -> None:
        """Create the storage layout. Idempotent."""
        self.root.mkdir(parents=True, exist_ok=True)
        self.facts.init()
        self.daily.init()
        self.sessions.init()

    def close(self) -> None:
        """Release the token counter. The manager is unusable afterwards."""
        self.tokens.release()

    def __enter__(self) -> "MemoryManager":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── long-term memory ────────────────────────────────────────

    def add_fact(self, section: str, fact: str, skip_duplicates: bool = True) -> bool:
        return self.facts.add_fact(section, fact, skip_duplicates)

    def remove_fact(self, section: str, fact: str) -> bool:
        return self.facts.remove_fact(section, fact)

    def get_long_term_memory(self) -> str:
        return self.facts.read()

    # ── daily notes ─────────────────────────────────────────────

    def add_daily_note(self, content: str, section: str = "Session Notes") -> str:
        return self.daily.add_entry(content, section)

    def add_decision(self, decision: str) -> str:
        return self.daily.add_decision(decision)

    def add_idea(self, idea: str) -> str:
        return self.daily.add_idea(idea)

    def add_task(self, task: str) -> str:
        return self.daily.add_task(task)

    def get_today_notes(self) -> str:
        return self.daily.read_today()

    def get_yesterday_notes(self) -> str:
        return self.daily.read_yesterday()

    # ── search & context ────────────────────────────────────────

    def search(self, query: str) -> list[SearchResult]:
        """
        Search long-term memory and every daily note (case-insensitive).

        Results list MEMORY.md matches first, then daily notes from the most
        recent date back.
        """
        regex = compile_search_pattern(query)
        results: list[SearchResult] = []

        for lineno, line in enumerate(self.facts.read().split("\n"), start=1):
            if regex.search(line):
                results.append(SearchResult(self.facts.path.name, lineno, line))

        for match in self.daily.search(query):
            name = f"memory/{match.date}.{self.daily.extension}"
            results.append(SearchResult(name, match.lineno, match.line))

        return results

    def get_system_context(self) -> str:
        """
        Assemble memory for a system prompt.

        Concatenates long-term memory, today's notes and yesterday's notes;
        empty daily notes are left out.
        """
        parts = [f"## Long-Term Memory\n\n{self.facts.read().strip()}"]

        today = self.get_today_notes().strip()
        if today:
            parts.append(f"## Today's Notes\n\n{today}")

        yesterday = self.get_yesterday_notes().strip()
        if yesterday:
            parts.append(f"## Yesterday's Notes\n\n{yesterday}")

        return "\n\n---\n\n".join(parts)

    # ── sessions ────────────────────────────────────────────────

    def start_session(self) -> str:
        """Create a new session and make it active. Returns its id."""
        metadata, transcript = self.sessions.create_session()
        self.session_id = metadata.session_id
        self.transcript = transcript
        return metadata.session_id

    def resume_session(self, session_id: str) -> bool:
        """Make an existing session active. Returns False if it isn't known."""
        transcript = self.sessions.load_session(session_id)
        if transcript is None:
            return False
        self.session_id = session_id
        self.transcript = transcript
        self._sync()
        return True

    def resume_latest_session(self) -> str | None:
        """Activate the most recently updated session, if any."""
        latest = self.sessions.get_most_recent_session()
        if latest is None or not self.resume_session(latest.session_id):
            return None
        return latest.session_id

    def list_sessions(self) -> list[SessionMetadata]:
        return self.sessions.get_sessions()

    def _require_transcript(self) -> Transcript:
        if self.transcript is None:
            raise NoActiveSessionError("No active session. Call start_session() first.")
        return self.transcript

    def _sync(self) -> None:
        if self.session_id and self.transcript is not None:
            self.sessions.sync_from_transcript(self.session_id, self.transcript)

    def add_user_message(self, content: str) -> TranscriptEntry:
        entry = self._require_transcript().add_user_message(content)
        self._sync()
        return entry

    def add_assistant_message(self, content: str) -> TranscriptEntry:
        entry = self._require_transcript().add_assistant_message(content)
        self._sync()
        return entry

    def add_tool_call(self, tool_name: str, input: Any) -> TranscriptEntry:
        entry = self._require_transcript().add_tool_call(tool_name, input)
        self._sync()
        return entry

    def add_tool_result(self, result: str, parent_id: str | None = None) -> TranscriptEntry:
        entry = self._require_transcript().add_tool_result(result, parent_id)
        self._sync()
        return entry

    def get_conversation_history(self) -> list[dict[str, str]]:
        if self.transcript is None:
            return []
        return self.transcript.build_conversation_history()

    def get_current_tokens(self) -> int:
        """Tokens in the active session's recent (uncompacted) entries."""
        if self.transcript is None:
            return 0
        return self.transcript.get_recent_tokens()

    def needs_memory_flush(self) -> bool:
        if self.transcript is None:
            return False
        return self.policy.needs_memory_flush(self.transcript)

    def needs_compaction(self) -> bool:
        if self.transcript is None:
            return False
        return self.policy.needs_compaction(self.transcript)

    async def compact(self, summarizer: Summarizer | None = None) -> CompactionResult | None:
        """
        Compact the active session.

        Args:
            summarizer: Overrides the summarizer given at construction.

        Returns:
            CompactionResult, or None if there was nothing to compact.

        Raises:
            CompactionError: Without an active session or a summarizer.
            SummarizationError: If the LLM summarizer fails.
        """
        result = await self.policy.compact(self.transcript, summarizer or self.summarizer)
        if result is not None:
            self._sync()
        else:
            logger.debug(f"Nothing to compact in session {self.session_id}")
        return result
