"""Session transcripts and the per-agent session index."""

from agentmem.session.store import SessionMetadata, SessionStore
from agentmem.session.transcript import Transcript, TranscriptEntry

__all__ = [
    "SessionMetadata",
    "SessionStore",
    "Transcript",
    "TranscriptEntry",
]
