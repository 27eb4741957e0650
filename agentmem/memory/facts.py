"""Long-term memory (MEMORY.md): curated facts, preferences and relationships."""

import re
from pathlib import Path

from loguru import logger

from agentmem.memory.sections import (
    get_section,
    normalize_bullet,
    remove_line_in_section,
    replace_section,
    upsert_in_section,
)

DEFAULT_SECTIONS = ["Preferences", "People", "Projects", "Facts"]
TITLE = "Long-Term Memory"


def compile_search_pattern(pattern: str) -> re.Pattern:
    """Compile a case-insensitive search pattern.

    Patterns that are not valid regular expressions are matched literally.
    """
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(pattern), re.IGNORECASE)


class FactStore:
    """
    Long-term fact ledger backed by a single markdown file.

    Each fact is a ``- <text>`` bullet under a ``## <section>`` heading.
    Full file contents are cached in memory; the cache is replaced on every
    local write and is never trusted across processes.
    """

    def __init__(self, path: Path, sections: list[str] | None = None):
        self.path = path
        self.sections = list(sections) if sections is not None else list(DEFAULT_SECTIONS)
        self._cache: str | None = None

    def _initial_content(self) -> str:
        parts = [f"# {TITLE}", ""]
        for section in self.sections:
            parts.extend([f"## {section}", ""])
        return "\n".join(parts) + "\n"

    def init(self) -> None:
        """Create the memory file with its default sections if it doesn't exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            content = self._initial_content()
            self.path.write_text(content, encoding="utf-8")
            self._cache = content
            logger.info(f"Created long-term memory at {self.path}")

    def read(self) -> str:
        """Read the whole file, re-creating it if it has vanished."""
        if self._cache is not None and self.path.exists():
            return self._cache
        try:
            self._cache = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._cache = None
            self.init()
            self._cache = self.path.read_text(encoding="utf-8")
        return self._cache

    def _write(self, content: str) -> None:
        self.path.write_text(content, encoding="utf-8")
        self._cache = content

    def clear_cache(self) -> None:
        """Drop the cached contents; the next read goes to disk."""
        self._cache = None

    def get_section(self, title: str) -> str | None:
        """Get the body of a section, or None if it doesn't exist."""
        return get_section(self.read(), title)

    def has_fact(self, section: str, fact: str) -> bool:
        """Check whether a section already holds an equivalent bullet."""
        body = self.get_section(section)
        if not body:
            return False
        wanted = normalize_bullet(fact)
        return any(normalize_bullet(line) == wanted for line in body.split("\n"))

    def add_fact(self, section: str, fact: str, skip_duplicates: bool = False) -> bool:
        """
        Add a fact as a bullet point to a section.

        Args:
            section: Section title (created at the end if missing).
            fact: Fact text, without the bullet marker.
            skip_duplicates: Don't add if an equivalent fact already exists.

        Returns:
            True if the fact was added, False if it was skipped as a duplicate.
        """
        if skip_duplicates and self.has_fact(section, fact):
            logger.debug(f"Fact already known in {section}: {fact}")
            return False

        content = upsert_in_section(self.read(), section, f"- {fact.strip()}", True)
        self._write(content)
        return True

    def add_facts(self, section: str, facts: list[str]) -> None:
        """Append several facts to a section in one write."""
        if not facts:
            return
        bullets = "\n".join(f"- {f.strip()}" for f in facts)
        self._write(upsert_in_section(self.read(), section, bullets, True))

    def remove_fact(self, section: str, fact: str) -> bool:
        """
        Remove the first bullet in a section equal to ``fact``.

        Returns:
            True if a line was removed, False if no matching fact was found.
        """
        wanted = normalize_bullet(fact)
        content, removed = remove_line_in_section(
            self.read(),
            section,
            lambda line: bool(line.strip()) and normalize_bullet(line) == wanted,
        )
        if removed:
            self._write(content)
        return removed

    def set_section(self, title: str, body: str) -> None:
        """Replace the entire body of a section."""
        self._write(replace_section(self.read(), title, body))

    def search(self, pattern: str) -> list[str]:
        """Return every line of the file matching ``pattern`` (case-insensitive)."""
        regex = compile_search_pattern(pattern)
        return [line for line in self.read().split("\n") if regex.search(line)]
