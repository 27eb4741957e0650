"""File-backed memory: long-term facts, daily notes and the manager facade."""

from agentmem.memory.daily import DailyLog, DailyMatch
from agentmem.memory.facts import FactStore
from agentmem.memory.manager import MemoryManager, NoActiveSessionError, SearchResult

__all__ = [
    "DailyLog",
    "DailyMatch",
    "FactStore",
    "MemoryManager",
    "NoActiveSessionError",
    "SearchResult",
]
