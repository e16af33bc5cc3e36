from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping

from metadata.types import EventKind, EventPattern, QueryFacets, ResolvedAlias

_PLATFORM_ID_SUFFIX_RE = re.compile(r"\s*\[[A-Za-z0-9_-]{11}\]\s*$")
_YEAR_RE = re.compile(r"^(?:19|20)\d{2}$")
_WEEKEND_RE = re.compile(r"^(?:weekend|we|w)(\d+)$", re.IGNORECASE)
_DAY_RE = re.compile(r"^(?:day|d)(\d+)$", re.IGNORECASE)
_ABBREVIATION_RE = re.compile(r"^[A-Z]{2,}$")
_FILENAME_SEPARATORS_RE = re.compile(r"_+")
_WS_RE = re.compile(r"\s+")


def strip_platform_id(query: str) -> str:
    """Drop one trailing ``[xxxxxxxxxxx]`` video-id token, if present."""
    return _PLATFORM_ID_SUFFIX_RE.sub("", str(query or ""))


def parse_event_token(token: str) -> EventPattern | None:
    """Return the weekend/day pattern a single token spells, e.g. ``WE2``."""
    match = _WEEKEND_RE.match(token)
    if match:
        return EventPattern(EventKind.WEEKEND, match.group(1))
    match = _DAY_RE.match(token)
    if match:
        return EventPattern(EventKind.DAY, match.group(1))
    return None


def analyze_query(query: str, aliases: Mapping[str, str] | None = None) -> QueryFacets:
    """Split a free-text query into search facets.

    Each whitespace token is classified in priority order: year, weekend
    pattern, day pattern, abbreviation. Alias lookup is independent of that
    order, and every token longer than two characters is also a keyword.
    """
    alias_table = {str(key).lower(): str(value) for key, value in (aliases or {}).items()}

    year: str | None = None
    keywords: list[str] = []
    abbreviations: list[str] = []
    event_patterns: list[EventPattern] = []
    resolved_aliases: list[ResolvedAlias] = []

    for token in strip_platform_id(query).split():
        pattern = parse_event_token(token)
        if _YEAR_RE.match(token):
            if year is None:
                year = token
        elif pattern is not None:
            event_patterns.append(pattern)
        elif _ABBREVIATION_RE.match(token):
            abbreviations.append(token)

        target = alias_table.get(token.lower())
        if target is not None:
            resolved_aliases.append(ResolvedAlias(alias=token, target=target))

        if len(token) > 2:
            keywords.append(token.lower())

    return QueryFacets(
        year=year,
        keywords=tuple(keywords),
        abbreviations=tuple(abbreviations),
        event_patterns=tuple(event_patterns),
        resolved_aliases=tuple(resolved_aliases),
    )


def query_from_filename(path: str | Path) -> str:
    stem = strip_platform_id(Path(path).stem)
    return _WS_RE.sub(" ", _FILENAME_SEPARATORS_RE.sub(" ", stem)).strip()
