"""Error taxonomy for the tracklist pipeline."""

from __future__ import annotations


class TracklistError(Exception):
    """Base class for failures surfaced to the per-file caller."""


class AuthenticationFailure(TracklistError):
    """Login finished without the required session cookies."""


class SessionUnavailable(TracklistError):
    """A catalog request was attempted without an active session."""


class RateLimited(TracklistError):
    """The catalog answered with its rate-limit page."""


class NoResultsFound(TracklistError):
    """No search candidate survived filtering."""


class UntimedTracklist(TracklistError):
    """The tracklist exists but carries no timestamps yet."""


class ExportFailure(TracklistError):
    """The structured export endpoint reported failure."""


class MalformedTimestamp(TracklistError, ValueError):
    pass


class MalformedLine(TracklistError, ValueError):
    pass
