"""1001Tracklists catalog access: session, search page parsing, tracklist resolution."""

from catalog.resolve import ExportSource, HtmlSource, TracklistResolver, canonical_tracklist_url
from catalog.session import CatalogSession
from catalog.session_store import SessionStore

__all__ = [
    "CatalogSession",
    "ExportSource",
    "HtmlSource",
    "SessionStore",
    "TracklistResolver",
    "canonical_tracklist_url",
]
