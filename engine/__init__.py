from .errors import (
    AuthenticationFailure,
    ExportFailure,
    MalformedLine,
    MalformedTimestamp,
    NoResultsFound,
    RateLimited,
    SessionUnavailable,
    TracklistError,
    UntimedTracklist,
)
from .paths import EnginePaths, build_engine_paths

__all__ = [
    "AuthenticationFailure",
    "EnginePaths",
    "ExportFailure",
    "MalformedLine",
    "MalformedTimestamp",
    "NoResultsFound",
    "RateLimited",
    "SessionUnavailable",
    "TracklistError",
    "UntimedTracklist",
    "build_engine_paths",
]
