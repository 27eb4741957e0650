"""Daily notes (memory/YYYY-MM-DD.md): append-only, timestamped episodic memory."""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable

from loguru import logger

from agentmem.memory.facts import compile_search_pattern
from agentmem.memory.sections import (
    create_timestamped_entry,
    format_date,
    upsert_in_section,
)

DEFAULT_DAILY_SECTIONS = ["Session Notes", "Decisions Made", "Ideas", "Tasks"]


@dataclass
class DailyMatch:
    """A line from a daily note that matched a search."""

    date: str
    line: str
    lineno: int  # 1-based


class DailyLog:
    """
    Per-date note files under a single directory.

    Files are named ``YYYY-MM-DD.<ext>`` using the local calendar date and are
    created lazily, with a fixed section skeleton, on the first write of a day.
    """

    def __init__(
        self,
        directory: Path,
        extension: str = "md",
        sections: list[str] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.directory = directory
        self.extension = extension
        self.sections = list(sections) if sections is not None else list(DEFAULT_DAILY_SECTIONS)
        self.clock = clock
        self._name_re = re.compile(rf"^(\d{{4}}-\d{{2}}-\d{{2}})\.{re.escape(extension)}$")

    def init(self) -> None:
        """Ensure the notes directory exists."""
        self.directory.mkdir(parents=True, exist_ok=True)

    def today(self) -> date:
        return self.clock().date()

    def path_for(self, day: date | None = None) -> Path:
        """Get the file path for a date (default: today)."""
        day = day or self.today()
        return self.directory / f"{format_date(day)}.{self.extension}"

    def _initial_content(self, day: date) -> str:
        parts = [f"# {format_date(day)}", ""]
        for section in self.sections:
            parts.extend([f"## {section}", ""])
        return "\n".join(parts) + "\n"

    # ── reading ─────────────────────────────────────────────────

    def read_date(self, day: date) -> str:
        """Read the notes for a date. Missing files read as an empty string."""
        try:
            return self.path_for(day).read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def read_today(self) -> str:
        return self.read_date(self.today())

    def read_yesterday(self) -> str:
        return self.read_date(self.today() - timedelta(days=1))

    def read_recent(self, days: int = 7) -> dict[str, str]:
        """Read up to ``days`` days back from today, skipping days without notes."""
        results: dict[str, str] = {}
        day = self.today()
        for _ in range(days):
            content = self.read_date(day)
            if content:
                results[format_date(day)] = content
            day -= timedelta(days=1)
        return results

    def list_dates(self) -> list[str]:
        """List dates that have a notes file, most recent first."""
        if not self.directory.is_dir():
            return []
        dates = []
        for path in self.directory.iterdir():
            m = self._name_re.match(path.name)
            if not m:
                continue
            try:
                date.fromisoformat(m.group(1))
            except ValueError:
                logger.debug(f"Ignoring daily file with invalid date: {path.name}")
                continue
            dates.append(m.group(1))
        return sorted(dates, reverse=True)

    def search(self, pattern: str) -> list[DailyMatch]:
        """Search every daily file for lines matching ``pattern`` (case-insensitive).

        Results are ordered by date (most recent first), then by line order.
        """
        regex = compile_search_pattern(pattern)
        results: list[DailyMatch] = []
        for day_str in self.list_dates():
            content = self.read_date(date.fromisoformat(day_str))
            for lineno, line in enumerate(content.split("\n"), start=1):
                if regex.search(line):
                    results.append(DailyMatch(date=day_str, line=line, lineno=lineno))
        return results

    # ── writing ─────────────────────────────────────────────────

    def _ensure_day(self, day: date) -> str:
        path = self.path_for(day)
        if path.exists():
            return path.read_text(encoding="utf-8")
        self.init()
        content = self._initial_content(day)
        path.write_text(content, encoding="utf-8")
        logger.debug(f"Created daily notes {path.name}")
        return content

    def add_entry(self, content: str, section: str = "Session Notes") -> str:
        """
        Add a timestamped entry to today's notes.

        Args:
            content: Entry text.
            section: Section to append to (appended to the file if missing).

        Returns:
            The entry line as written, e.g. ``- [14:32] Shipped v1``.
        """
        now = self.clock()
        text = self._ensure_day(now.date())
        entry = create_timestamped_entry(content, now)
        self.path_for(now.date()).write_text(
            upsert_in_section(text, section, entry, True), encoding="utf-8"
        )
        return entry

    def add_decision(self, decision: str) -> str:
        return self.add_entry(decision, "Decisions Made")

    def add_idea(self, idea: str) -> str:
        return self.add_entry(idea, "Ideas")

    def add_task(self, task: str) -> str:
        return self.add_entry(task, "Tasks")
