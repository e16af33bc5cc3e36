"""Regex extraction of search results and tracklist pages from catalog HTML."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_RESULT_ITEM_SPLIT_RE = re.compile(r"<div[^>]+class=\"[^\"]*\bbItm\b[^\"]*\"[^>]*>", re.IGNORECASE)
_RESULT_LINK_RE = re.compile(
    r"<a[^>]+href=\"(?P<url>/tracklist/(?P<id>[a-z0-9]+)/[^\"]*)\"[^>]*>(?P<title>.*?)</a>",
    re.IGNORECASE | re.DOTALL,
)
_RESULT_DURATION_RE = re.compile(
    r"title=\"play time\"[^>]*>(?:\s*<i[^>]*>\s*</i>)?\s*(?P<value>[^<]*)<",
    re.IGNORECASE,
)
_RESULT_DATE_RE = re.compile(
    r"title=\"tracklist date\"[^>]*>(?:\s*<i[^>]*>\s*</i>)?\s*(?P<value>[^<]*)<",
    re.IGNORECASE,
)
_PAGINATION_LABELS = {"next", "prev", "previous", "first", "last", "more", "»", "«", "›", "‹"}

_DOCUMENT_TITLE_RE = re.compile(r"<title[^>]*>(?P<title>.*?)</title>", re.IGNORECASE | re.DOTALL)
_TITLE_SUFFIX_RE = re.compile(
    r"(?:\s*[-|]?\s*Tracklist(?:\s*/\s*Playlist)?)?(?:\s*\|\s*1001\s*Tracklists.*)?\s*$",
    re.IGNORECASE,
)
_TRACK_BLOCK_SPLIT_RE = re.compile(r"(?=<div[^>]+class=\"[^\"]*\btlpItem\b)", re.IGNORECASE)
_TRACK_BLOCK_CLASS_RE = re.compile(r"^<div[^>]+class=\"(?P<classes>[^\"]*\btlpItem\b[^\"]*)\"", re.IGNORECASE)
_TRACK_NAME_META_RE = re.compile(r"<meta[^>]+itemprop=\"name\"[^>]+content=\"(?P<name>[^\"]*)\"", re.IGNORECASE)
_TRACK_VALUE_RE = re.compile(
    r"<span[^>]+class=\"[^\"]*\btrackValue\b[^\"]*\"[^>]*>(?P<name>.*?)</span>",
    re.IGNORECASE | re.DOTALL,
)
_CUE_TABLE_RE = re.compile(r"cueSeconds\s*=\s*\[(?P<values>[^\]]*)\]", re.IGNORECASE)
_LITERAL_TIME_RE = re.compile(r"(?<![\d:])(?P<time>\d{1,2}:\d{2}(?::\d{2})?)(?![\d:])")
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

TOGETHER_WITH_PREVIOUS_CLASS = "tlpSubTog"


@dataclass
class RawSearchItem:
    id: str
    title: str
    url: str
    duration_text: str
    date_text: str


@dataclass
class ParsedTrack:
    title: str
    cue_seconds: int | None = None
    cue_text: str | None = None


def clean_html_text(value: str | None) -> str:
    text = _TAG_RE.sub(" ", value or "")
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def parse_search_results(body: str) -> list[RawSearchItem]:
    """Split a result page on its ``bItm`` blocks, dropping unusable and repeated items."""
    items: list[RawSearchItem] = []
    seen_ids: set[str] = set()
    for chunk in _RESULT_ITEM_SPLIT_RE.split(body or "")[1:]:
        link = _RESULT_LINK_RE.search(chunk)
        if not link:
            continue
        tracklist_id = link.group("id")
        title = clean_html_text(link.group("title"))
        if tracklist_id in seen_ids:
            continue
        if not title or title.lower() in _PAGINATION_LABELS or title.isdigit():
            continue
        seen_ids.add(tracklist_id)
        duration = _RESULT_DURATION_RE.search(chunk)
        date = _RESULT_DATE_RE.search(chunk)
        items.append(
            RawSearchItem(
                id=tracklist_id,
                title=title,
                url=html.unescape(link.group("url")),
                duration_text=clean_html_text(duration.group("value")) if duration else "",
                date_text=clean_html_text(date.group("value")) if date else "",
            )
        )
    return items


def parse_document_title(body: str) -> str | None:
    match = _DOCUMENT_TITLE_RE.search(body or "")
    if not match:
        return None
    title = _TITLE_SUFFIX_RE.sub("", clean_html_text(match.group("title")))
    return title or None


def _parse_cue_table(body: str) -> list[int | None]:
    match = _CUE_TABLE_RE.search(body or "")
    if not match:
        return []
    cues: list[int | None] = []
    for raw in match.group("values").split(","):
        value = raw.strip().strip("\"'")
        cues.append(int(value) if value.isdigit() else None)
    return cues


def _block_track_name(block: str) -> str:
    meta = _TRACK_NAME_META_RE.search(block)
    if meta:
        return clean_html_text(meta.group("name"))
    value = _TRACK_VALUE_RE.search(block)
    if value:
        return clean_html_text(value.group("name"))
    return ""


def parse_track_blocks(body: str) -> list[ParsedTrack]:
    """Pair the n-th ``tlpItem`` block with the n-th cue value.

    Blocks played together with the previous track are dropped after the
    pairing, so they never shift the cue table.
    """
    cues = _parse_cue_table(body)
    tracks: list[ParsedTrack] = []
    blocks = [block for block in _TRACK_BLOCK_SPLIT_RE.split(body or "") if _TRACK_BLOCK_CLASS_RE.match(block)]
    for index, block in enumerate(blocks):
        classes = _TRACK_BLOCK_CLASS_RE.match(block).group("classes").split()
        if TOGETHER_WITH_PREVIOUS_CLASS in classes:
            continue
        name = _block_track_name(block)
        cue = cues[index] if index < len(cues) else None
        if not name and cue is None:
            continue
        tracks.append(ParsedTrack(title=name or "ID", cue_seconds=cue))
    return tracks


def parse_loose_tracks(body: str) -> list[ParsedTrack]:
    """Pair each ``trackValue`` name with the next literal ``m:ss`` before the following name."""
    matches = list(_TRACK_VALUE_RE.finditer(body or ""))
    tracks: list[ParsedTrack] = []
    for position, match in enumerate(matches):
        end = matches[position + 1].start() if position + 1 < len(matches) else len(body)
        name = clean_html_text(match.group("name"))
        time_match = _LITERAL_TIME_RE.search(body, match.end(), end)
        cue_text = time_match.group("time") if time_match else None
        if not name and cue_text is None:
            continue
        tracks.append(ParsedTrack(title=name or "ID", cue_text=cue_text))
    return tracks


def parse_tracklist_page(body: str) -> list[ParsedTrack]:
    tracks = parse_track_blocks(body)
    if tracks:
        return tracks
    logger.debug("[RESOLVE] no structured track blocks, trying loose name/time pairing")
    return parse_loose_tracks(body)
