"""Structured value types shared by the tracklist pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class EventKind(Enum):
    WEEKEND = "weekend"
    DAY = "day"


@dataclass(frozen=True)
class EventPattern:
    kind: EventKind
    number: str


@dataclass(frozen=True)
class ResolvedAlias:
    alias: str
    target: str


@dataclass(frozen=True)
class QueryFacets:
    """Search facets derived once from a free-text query."""

    year: str | None = None
    keywords: tuple[str, ...] = ()
    abbreviations: tuple[str, ...] = ()
    event_patterns: tuple[EventPattern, ...] = ()
    resolved_aliases: tuple[ResolvedAlias, ...] = ()


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    RESTORING = "restoring"
    FRESH = "fresh"
    ACTIVE = "active"
    INVALID = "invalid"


@dataclass
class SearchResult:
    """One catalog candidate; ``duration_minutes`` is ``None`` when unknown."""

    id: str
    title: str
    url: str
    duration_minutes: int | None = None
    date: str | None = None
    score: float = 0.0
    matched_keyword_count: int = 0
    has_event_match: bool = False
    index: int = 0
    score_breakdown: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class TracklistSelection:
    url: str
    id: str | None = None
    title: str | None = None


@dataclass
class TracklistContent:
    canonical_url: str
    canonical_title: str
    lines: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Chapter:
    timestamp: str  # HH:MM:SS.mmm
    title: str
    language: str = "eng"


@dataclass(frozen=True)
class ExistingChapter:
    """Chapter read back from a media file, millisecond or finer precision."""

    timestamp: str
    title: str


@dataclass(frozen=True)
class StoredMetadata:
    url: str
    title: str
