"""Session index: per-agent metadata for every transcript."""

import json
import uuid
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from agentmem.agent.tokens import estimate_tokens
from agentmem.session.transcript import Transcript

_KEY_MAP = {
    "session_id": "sessionId",
    "agent_id": "agentId",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "total_tokens": "totalTokens",
    "entry_count": "entryCount",
    "compaction_count": "compactionCount",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SessionMetadata:
    """Denormalized totals for one session. The transcript stays authoritative."""

    session_id: str
    agent_id: str
    created_at: str
    updated_at: str
    total_tokens: int = 0
    entry_count: int = 0
    compaction_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {_KEY_MAP[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionMetadata":
        return cls(**{name: data[key] for name, key in _KEY_MAP.items() if key in data})


class SessionStore:
    """
    Tracks an agent's sessions in ``sessions.json``.

    Directory layout:
        <base_dir>/agents/<agent_id>/
        ├── sessions.json          # {"sessions": [...metadata...]}
        └── sessions/
            └── <session_id>.jsonl # transcript
    """

    def __init__(
        self,
        base_dir: Path,
        agent_id: str,
        count_tokens: Callable[[str], int] = estimate_tokens,
    ):
        self.base_dir = base_dir
        self.agent_id = agent_id
        self.count_tokens = count_tokens
        self.agent_dir = base_dir / "agents" / agent_id
        self.sessions_file = self.agent_dir / "sessions.json"
        self._sessions: list[SessionMetadata] = []
        self._loaded = False

    def init(self) -> None:
        self.agent_dir.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if self._loaded:
            return
        self._sessions = []
        if self.sessions_file.exists():
            try:
                data = json.loads(self.sessions_file.read_text(encoding="utf-8"))
                self._sessions = [
                    SessionMetadata.from_dict(s) for s in data.get("sessions", [])
                ]
            except (json.JSONDecodeError, TypeError, AttributeError) as e:
                logger.warning(f"Failed to read {self.sessions_file}: {e}")
                self._sessions = []
        self._loaded = True

    def _save(self) -> None:
        self.agent_dir.mkdir(parents=True, exist_ok=True)
        data = {"sessions": [s.to_dict() for s in self._sessions]}
        self.sessions_file.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def transcript_path(self, session_id: str) -> Path:
        """Get the JSONL transcript path for a session."""
        return self.agent_dir / "sessions" / f"{session_id}.jsonl"

    def _transcript(self, session_id: str) -> Transcript:
        return Transcript(self.transcript_path(session_id), count_tokens=self.count_tokens)

    # ── public API ──────────────────────────────────────────────

    def create_session(self) -> tuple[SessionMetadata, Transcript]:
        """Register a new session and create its empty transcript."""
        self._load()
        now = _now_iso()
        metadata = SessionMetadata(
            session_id=str(uuid.uuid4()),
            agent_id=self.agent_id,
            created_at=now,
            updated_at=now,
        )
        self._sessions.append(metadata)
        self._save()

        transcript = self._transcript(metadata.session_id)
        transcript.init()
        logger.info(f"Created session {metadata.session_id} for agent {self.agent_id}")
        return metadata, transcript

    def get_session(self, session_id: str) -> SessionMetadata | None:
        self._load()
        return next((s for s in self._sessions if s.session_id == session_id), None)

    def load_session(self, session_id: str) -> Transcript | None:
        """Open the transcript of a known session, or None if it isn't indexed."""
        if self.get_session(session_id) is None:
            return None
        transcript = self._transcript(session_id)
        transcript.load()
        return transcript

    def update_session(self, session_id: str, /, **updates: Any) -> SessionMetadata | None:
        """Apply field updates and bump ``updated_at``. Unknown sessions are ignored."""
        metadata = self.get_session(session_id)
        if metadata is None:
            return None
        for key in ("session_id", "agent_id", "created_at"):
            updates.pop(key, None)
        for key, value in updates.items():
            if not hasattr(metadata, key):
                raise AttributeError(f"Unknown session field: {key}")
            setattr(metadata, key, value)
        metadata.updated_at = _now_iso()
        self._save()
        return metadata

    def sync_from_transcript(
        self, session_id: str, transcript: Transcript
    ) -> SessionMetadata | None:
        """Copy totals from the transcript into the index."""
        return self.update_session(
            session_id,
            total_tokens=transcript.get_total_tokens(),
            entry_count=transcript.entry_count,
            compaction_count=transcript.compaction_count,
        )

    def get_sessions(self) -> list[SessionMetadata]:
        self._load()
        return list(self._sessions)

    def get_most_recent_session(self) -> SessionMetadata | None:
        self._load()
        if not self._sessions:
            return None
        return max(self._sessions, key=lambda s: datetime.fromisoformat(s.updated_at))

    def delete_session(self, session_id: str) -> bool:
        """
        Remove a session from the index.

        The transcript file is left on disk.

        Returns:
            True if deleted, False if not found.
        """
        metadata = self.get_session(session_id)
        if metadata is None:
            return False
        self._sessions.remove(metadata)
        self._save()
        return True
