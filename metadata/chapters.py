"""Chapter normalization and comparison against already embedded chapters."""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from config.settings import DEFAULT_CHAPTER_LANGUAGE
from engine.errors import MalformedLine, MalformedTimestamp, UntimedTracklist
from metadata.types import Chapter, ExistingChapter, TracklistContent

_TIMED_LINE_RE = re.compile(r"^\s*\[(?P<time>[^\]]*)\]\s*(?P<title>.*?)\s*$")
_TIME_RE = re.compile(r"^(?:(?P<hours>\d{1,2}):)?(?P<minutes>\d{1,2}):(?P<seconds>\d{2})(?:\.(?P<fraction>\d+))?$")
_NUMBERED_LINE_RE = re.compile(r"^\s*\d+\.\s+\S")
_CANONICAL_TIMESTAMP_RE = re.compile(r"^(?P<clock>\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d+))?$")


def normalize_timestamp(value: str) -> str:
    """Normalize ``m:ss``, ``mm:ss``, ``h:mm:ss`` or ``hh:mm:ss`` to ``HH:MM:SS.mmm``.

    A fractional suffix is truncated or zero-padded to milliseconds.

    Raises:
        MalformedTimestamp: If the shape is unknown or minutes/seconds are 60 or more.
    """
    text = str(value or "").strip()
    match = _TIME_RE.match(text)
    if not match:
        raise MalformedTimestamp(f"unrecognized timestamp: {value!r}")
    hours = int(match.group("hours") or 0)
    minutes = int(match.group("minutes"))
    seconds = int(match.group("seconds"))
    if minutes >= 60 or seconds >= 60:
        raise MalformedTimestamp(f"minute or second component out of range: {value!r}")
    millis = (match.group("fraction") or "")[:3].ljust(3, "0")
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis}"


def normalize_chapters(lines: Iterable[str], language: str = DEFAULT_CHAPTER_LANGUAGE) -> list[Chapter]:
    """Turn ``[time] title`` lines into chapters, skipping lines without a bracketed time."""
    chapters: list[Chapter] = []
    for line in lines:
        match = _TIMED_LINE_RE.match(line or "")
        if not match:
            continue
        title = match.group("title")
        if not title:
            raise MalformedLine(f"timestamped line has no title: {line!r}")
        chapters.append(Chapter(timestamp=normalize_timestamp(match.group("time")), title=title, language=language))
    return chapters


def is_untimed(lines: Sequence[str]) -> bool:
    """True when no line is timestamped but some line looks like ``3. Artist - Track``."""
    if any(_TIMED_LINE_RE.match(line or "") for line in lines):
        return False
    return any(_NUMBERED_LINE_RE.match(line or "") for line in lines)


def chapters_from_content(content: TracklistContent, language: str = DEFAULT_CHAPTER_LANGUAGE) -> list[Chapter]:
    if is_untimed(content.lines):
        raise UntimedTracklist(f"tracklist {content.canonical_url} has no timestamps yet")
    return normalize_chapters(content.lines, language=language)


def _comparable_timestamp(value: str) -> str:
    text = str(value or "").strip()
    match = _CANONICAL_TIMESTAMP_RE.match(text)
    if not match:
        return text
    fraction = (match.group("fraction") or "")[:3].ljust(3, "0")
    return f"{match.group('clock')}.{fraction}"


def chapters_identical(existing: Sequence[ExistingChapter] | None, new: Sequence[Chapter]) -> bool:
    """Compare embedded chapters with freshly normalized ones, position by position."""
    if not existing:
        return False
    if len(existing) != len(new):
        return False
    for old, fresh in zip(existing, new):
        if old.title != fresh.title:
            return False
        if _comparable_timestamp(old.timestamp) != fresh.timestamp:
            return False
    return True
