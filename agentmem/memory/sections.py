"""Heading-delimited markdown section editing.

A document is read as an ordered list of sections. A section starts at a
heading line (one to three ``#`` followed by whitespace and a title) and runs
until the next heading of any of those levels or the end of the document.
Text before the first heading belongs to an untitled section (title ``""``).

Titles are not required to be unique. Every lookup resolves to the *first*
section with a matching title.

All functions here are pure text transforms; no file I/O.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime

HEADING_RE = re.compile(r"^(#{1,3})\s+(.*?)\s*$")
BULLET_RE = re.compile(r"^\s*[-*+]\s*")


@dataclass
class _Span:
    """Line span of one section inside a split document."""

    title: str
    heading: int | None  # index of the heading line, None for the untitled lead
    start: int  # first body line
    end: int  # exclusive; index of next heading or len(lines)


def _heading_title(line: str) -> str | None:
    match = HEADING_RE.match(line)
    if not match or not match.group(2):
        return None
    return match.group(2)


def _spans(lines: list[str]) -> list[_Span]:
    spans: list[_Span] = []
    for i, line in enumerate(lines):
        title = _heading_title(line)
        if title is None:
            if not spans:
                spans.append(_Span("", None, 0, 0))
            continue
        if spans:
            spans[-1].end = i
        spans.append(_Span(title, i, i + 1, i + 1))
    if spans:
        spans[-1].end = len(lines)
    return spans


def _find(lines: list[str], title: str) -> _Span | None:
    wanted = title.strip()
    for span in _spans(lines):
        if span.title == wanted:
            return span
    return None


def _trim_blank_lines(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def parse_sections(text: str) -> list[tuple[str, str]]:
    """Split a document into ``(title, raw_body)`` pairs in document order."""
    lines = text.split("\n")
    return [
        (span.title, "\n".join(lines[span.start:span.end]))
        for span in _spans(lines)
    ]


def get_section(text: str, title: str) -> str | None:
    """Return the body of the first section titled ``title``.

    The body is trimmed of leading and trailing blank lines. Returns None when
    no section has that title.
    """
    lines = text.split("\n")
    span = _find(lines, title)
    if span is None:
        return None
    return "\n".join(_trim_blank_lines(lines[span.start:span.end]))


def _splice_body(lines: list[str], span: _Span, body_end: int, new_lines: list[str]) -> str:
    """Replace ``lines[body_end:span.end]`` with ``new_lines`` and one separator."""
    tail = lines[span.end:]
    # One blank line before the next heading, or a single trailing newline at EOF.
    result = lines[:body_end] + new_lines + [""] + tail
    return "\n".join(result)


def _append_new_section(text: str, title: str, body_lines: list[str]) -> str:
    block = "\n".join([f"## {title.strip()}", *body_lines]) + "\n"
    head = text.rstrip("\n")
    if not head.strip():
        return block
    return f"{head}\n\n{block}"


def upsert_in_section(
    text: str, title: str, new_line: str, create_if_missing: bool = True
) -> str:
    """Append ``new_line`` as the last line of a section's body.

    Trailing blank lines in the section are collapsed first, so exactly one
    blank line separates the body from the next heading. When the section is
    missing it is appended as ``## title`` at the end of the document if
    ``create_if_missing`` is set; otherwise the text is returned unchanged.
    """
    lines = text.split("\n")
    span = _find(lines, title)
    if span is None:
        if not create_if_missing:
            return text
        return _append_new_section(text, title, new_line.split("\n"))

    insert_at = span.end
    while insert_at > span.start and not lines[insert_at - 1].strip():
        insert_at -= 1
    return _splice_body(lines, span, insert_at, new_line.split("\n"))


def replace_section(text: str, title: str, new_body: str) -> str:
    """Replace the whole body of a section, creating it at the end if missing."""
    body_lines = new_body.strip("\n").split("\n") if new_body.strip() else []
    lines = text.split("\n")
    span = _find(lines, title)
    if span is None:
        return _append_new_section(text, title, body_lines)
    return _splice_body(lines, span, span.start, body_lines)


def remove_line_in_section(text: str, title: str, predicate) -> tuple[str, bool]:
    """Delete the first body line of a section for which ``predicate(line)`` holds.

    Returns:
        Tuple of (new text, whether a line was removed).
    """
    lines = text.split("\n")
    span = _find(lines, title)
    if span is None:
        return text, False
    for i in range(span.start, span.end):
        if predicate(lines[i]):
            del lines[i]
            return "\n".join(lines), True
    return text, False


# ── bullets & formatting ─────────────────────────────────────────


def normalize_bullet(line: str) -> str:
    """Strip a leading bullet marker, surrounding whitespace and case."""
    return BULLET_RE.sub("", line, count=1).strip().lower()


def extract_bullets(body: str) -> list[str]:
    """Return the text of every bullet line in a section body."""
    return [
        BULLET_RE.sub("", line, count=1).strip()
        for line in body.split("\n")
        if BULLET_RE.match(line) and line.strip() not in ("-", "*", "+")
    ]


def format_date(day: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return day.strftime("%Y-%m-%d")


def format_time(moment: datetime) -> str:
    """Format a time of day as ``HH:MM`` (24h)."""
    return moment.strftime("%H:%M")


def create_timestamped_entry(content: str, moment: datetime) -> str:
    return f"- [{format_time(moment)}] {content}"


def create_section(title: str, lines: list[str] | None = None) -> str:
    """Render a ``## title`` block followed by its lines."""
    return "\n".join([f"## {title}", *(lines or [])]) + "\n"
