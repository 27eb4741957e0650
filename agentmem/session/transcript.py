"""Session transcripts: append-only JSONL conversation logs."""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from agentmem.agent.tokens import estimate_tokens

ENTRY_TYPES = ("message", "tool_call", "tool_result", "compaction")
ROLES = ("user", "assistant")
SUMMARY_PREFIX = "[Previous conversation summary]\n"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TranscriptEntry:
    """
    One transcript record.

    ``parent_id`` links an entry to the one it follows. It is kept for
    compatibility with threaded logs; every reader treats the transcript as a
    flat chronological sequence.
    """

    id: str
    parent_id: str | None
    timestamp: str
    type: str
    content: str
    role: str | None = None
    token_count: int | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the on-disk key names; absent optionals are omitted."""
        data: dict[str, Any] = {
            "id": self.id,
            "parentId": self.parent_id,
            "timestamp": self.timestamp,
            "type": self.type,
        }
        if self.role is not None:
            data["role"] = self.role
        data["content"] = self.content
        if self.token_count is not None:
            data["tokenCount"] = self.token_count
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranscriptEntry":
        """Build an entry from a decoded line.

        Raises:
            ValueError: If required fields are missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("entry is not an object")
        try:
            entry_id = data["id"]
            entry_type = data["type"]
            content = data["content"]
            timestamp = data["timestamp"]
        except KeyError as e:
            raise ValueError(f"missing field {e}") from e
        if entry_type not in ENTRY_TYPES:
            raise ValueError(f"unknown entry type {entry_type!r}")
        if not isinstance(content, str):
            raise ValueError("content must be a string")
        token_count = data.get("tokenCount")
        if token_count is not None and not isinstance(token_count, int):
            raise ValueError("tokenCount must be an integer")
        return cls(
            id=entry_id,
            parent_id=data.get("parentId"),
            timestamp=timestamp,
            type=entry_type,
            content=content,
            role=data.get("role"),
            token_count=token_count,
            metadata=data.get("metadata"),
        )


class Transcript:
    """
    Append-only transcript of a single conversation.

    The JSONL file is the source of truth: one serialized entry per line,
    never rewritten. The in-memory list mirrors it and is loaded once.
    """

    def __init__(
        self,
        path: Path,
        count_tokens: Callable[[str], int] = estimate_tokens,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.path = path
        self.count_tokens = count_tokens
        self.clock = clock
        self.id_factory = id_factory
        self._entries: list[TranscriptEntry] = []
        self._total_tokens = 0
        self._loaded = False

    def init(self) -> None:
        """Create the transcript file (and parents) if needed, then load it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()
        self.load()

    def load(self) -> None:
        """Read all entries from disk. No-op once loaded; see ``reload``."""
        if self._loaded:
            return

        self._entries = []
        self._total_tokens = 0

        if self.path.exists():
            # Lines are decoded one at a time; invalid UTF-8 only loses that line
            with open(self.path, "rb") as f:
                for lineno, raw in enumerate(f, start=1):
                    if not raw.strip():
                        continue
                    try:
                        line = raw.decode("utf-8").strip()
                        entry = TranscriptEntry.from_dict(json.loads(line))
                    except (UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
                        logger.warning(
                            f"Skipping malformed transcript line {lineno} in {self.path.name}: {e}"
                        )
                        continue
                    self._entries.append(entry)
                    self._total_tokens += entry.token_count or 0

        self._loaded = True

    def reload(self) -> None:
        """Discard in-memory state and re-read the file."""
        self._loaded = False
        self._entries = []
        self._total_tokens = 0
        self.load()

    # ── appending ───────────────────────────────────────────────

    def append(
        self,
        type: str,
        content: str,
        role: str | None = None,
        parent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TranscriptEntry:
        """
        Append a new entry.

        The entry is stamped with a fresh id, the current time and its token
        count, then written as a single line at the end of the file.

        Returns:
            The completed entry.
        """
        if type not in ENTRY_TYPES:
            raise ValueError(f"Unknown entry type: {type}")
        if role is not None and role not in ROLES:
            raise ValueError(f"Unknown role: {role}")

        self.load()

        entry = TranscriptEntry(
            id=self.id_factory(),
            parent_id=parent_id,
            timestamp=self.clock().isoformat(),
            type=type,
            content=content,
            role=role,
            token_count=self.count_tokens(content),
            metadata=metadata,
        )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

        self._entries.append(entry)
        self._total_tokens += entry.token_count or 0
        return entry

    def add_user_message(self, content: str, parent_id: str | None = None) -> TranscriptEntry:
        return self.append(
            "message", content, role="user", parent_id=parent_id or self.last_entry_id
        )

    def add_assistant_message(
        self, content: str, parent_id: str | None = None
    ) -> TranscriptEntry:
        return self.append(
            "message", content, role="assistant", parent_id=parent_id or self.last_entry_id
        )

    def add_tool_call(
        self, tool_name: str, input: Any, parent_id: str | None = None
    ) -> TranscriptEntry:
        """Record a tool invocation; content is ``{"tool": ..., "input": ...}`` as JSON."""
        return self.append(
            "tool_call",
            json.dumps({"tool": tool_name, "input": input}, ensure_ascii=False),
            parent_id=parent_id or self.last_entry_id,
            metadata={"toolName": tool_name},
        )

    def add_tool_result(self, result: str, parent_id: str | None = None) -> TranscriptEntry:
        return self.append(
            "tool_result", result, parent_id=parent_id or self.last_entry_id
        )

    def add_compaction(self, summary: str, removed_entry_ids: list[str]) -> TranscriptEntry:
        """Append a compaction boundary that logically replaces ``removed_entry_ids``."""
        return self.append(
            "compaction",
            summary,
            parent_id=None,
            metadata={
                "removedEntryIds": list(removed_entry_ids),
                "removedCount": len(removed_entry_ids),
            },
        )

    # ── views ───────────────────────────────────────────────────

    @property
    def entries(self) -> list[TranscriptEntry]:
        """All entries, including those archived behind a compaction."""
        self.load()
        return list(self._entries)

    @property
    def last_entry_id(self) -> str | None:
        self.load()
        return self._entries[-1].id if self._entries else None

    @property
    def entry_count(self) -> int:
        self.load()
        return len(self._entries)

    @property
    def compaction_count(self) -> int:
        self.load()
        return sum(1 for e in self._entries if e.type == "compaction")

    def get_recent_entries(self) -> list[TranscriptEntry]:
        """Entries from the last compaction (inclusive) to the end, or all of them."""
        self.load()
        for i in range(len(self._entries) - 1, -1, -1):
            if self._entries[i].type == "compaction":
                return self._entries[i:]
        return list(self._entries)

    def get_recent_tokens(self) -> int:
        return sum(e.token_count or 0 for e in self.get_recent_entries())

    def get_total_tokens(self) -> int:
        """Tokens over every entry ever appended, archived ones included."""
        self.load()
        return self._total_tokens

    def build_conversation_history(self) -> list[dict[str, str]]:
        """
        Build a role/content message list for LLM context.

        Only recent entries are used. A compaction entry becomes an assistant
        message carrying the summary; tool entries are left out.
        """
        messages: list[dict[str, str]] = []
        for entry in self.get_recent_entries():
            if entry.type == "compaction":
                messages.append({
                    "role": "assistant",
                    "content": SUMMARY_PREFIX + entry.content,
                })
            elif entry.type == "message" and entry.role:
                messages.append({"role": entry.role, "content": entry.content})
        return messages
