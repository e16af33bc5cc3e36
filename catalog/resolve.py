"""Tracklist content resolution through the export endpoint or the HTML page."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from catalog.html_parsing import parse_document_title, parse_tracklist_page
from catalog.session import CATALOG_BASE_URL, CatalogSession
from engine.errors import ExportFailure
from metadata.types import TracklistContent, TracklistSelection

_LOG = logging.getLogger(__name__)

EXPORT_PATH = "/ajax/tracklist_export.php"
_TRACKLIST_ID_RE = re.compile(r"/tracklist/(?P<id>[a-z0-9]+)(?:/|\.html|$)", re.IGNORECASE)


def tracklist_id_from_url(url: str | None) -> str | None:
    match = _TRACKLIST_ID_RE.search(str(url or ""))
    return match.group("id").lower() if match else None


def canonical_tracklist_url(tracklist_id: str, base_url: str = CATALOG_BASE_URL) -> str:
    """Short, slug-free URL of one tracklist; stable enough to persist."""
    return f"{base_url.rstrip('/')}/tracklist/{tracklist_id}/"


def format_cue(seconds: int) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def _selection_id(selection: TracklistSelection) -> str:
    tracklist_id = selection.id or tracklist_id_from_url(selection.url)
    if not tracklist_id:
        raise ValueError(f"cannot derive a tracklist id from {selection.url!r}")
    return tracklist_id


class TracklistSource(ABC):
    name = ""

    def __init__(self, session: CatalogSession) -> None:
        self.session = session

    @abstractmethod
    def fetch(self, selection: TracklistSelection) -> TracklistContent:
        """Return the tracklist lines for one selection."""
        raise NotImplementedError


class ExportSource(TracklistSource):
    """Authenticated text export, returned inside a ``{success, data}`` JSON envelope."""

    name = "export"

    def fetch(self, selection: TracklistSelection) -> TracklistContent:
        tracklist_id = _selection_id(selection)
        response = self.session.post(
            EXPORT_PATH,
            data={"id": tracklist_id},
            headers={"Referer": self.session.url_for(selection.url), "X-Requested-With": "XMLHttpRequest"},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExportFailure(f"export for {tracklist_id} did not return JSON") from exc
        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ExportFailure(f"export for {tracklist_id} failed: {message or 'no reason given'}")

        lines = [line.strip() for line in str(payload.get("data") or "").splitlines() if line.strip()]
        title = str(payload.get("title") or "").strip() or selection.title or tracklist_id
        return TracklistContent(
            canonical_url=canonical_tracklist_url(tracklist_id, self.session.base_url),
            canonical_title=title,
            lines=lines,
        )


class HtmlSource(TracklistSource):
    """Scrapes the public tracklist page; untimed tracks become ``n. title`` lines."""

    name = "html"

    def fetch(self, selection: TracklistSelection) -> TracklistContent:
        response = self.session.get(selection.url)
        body = response.text or ""
        tracklist_id = selection.id or tracklist_id_from_url(getattr(response, "url", None)) or _selection_id(selection)

        lines = []
        for number, track in enumerate(parse_tracklist_page(body), start=1):
            if track.cue_seconds is not None:
                lines.append(f"[{format_cue(track.cue_seconds)}] {track.title}")
            elif track.cue_text:
                lines.append(f"[{track.cue_text}] {track.title}")
            else:
                lines.append(f"{number}. {track.title}")

        title = parse_document_title(body) or selection.title or tracklist_id
        return TracklistContent(
            canonical_url=canonical_tracklist_url(tracklist_id, self.session.base_url),
            canonical_title=title,
            lines=lines,
        )


class TracklistResolver:
    """Picks export when the session is authenticated, HTML otherwise.

    A failed export moves to the HTML source once; any other error
    propagates to the caller.
    """

    def __init__(
        self,
        session: CatalogSession,
        *,
        export_source: TracklistSource | None = None,
        html_source: TracklistSource | None = None,
    ) -> None:
        self.session = session
        self.export_source = export_source or ExportSource(session)
        self.html_source = html_source or HtmlSource(session)

    def sources(self) -> list[TracklistSource]:
        if self.session.authenticated:
            return [self.export_source, self.html_source]
        return [self.html_source]

    def resolve(self, selection: TracklistSelection) -> TracklistContent:
        self.session.ensure_active()
        plan = self.sources()
        for position, source in enumerate(plan):
            try:
                content = source.fetch(selection)
            except ExportFailure as exc:
                if position + 1 >= len(plan):
                    raise
                _LOG.warning(
                    "[RESOLVE] url=%s source=%s failed=%s next=%s",
                    selection.url,
                    source.name,
                    exc,
                    plan[position + 1].name,
                )
                continue
            _LOG.info(
                "[RESOLVE] url=%s source=%s lines=%s canonical=%s",
                selection.url,
                source.name,
                len(content.lines),
                content.canonical_url,
            )
            return content
        raise ExportFailure(f"no tracklist source succeeded for {selection.url}")
