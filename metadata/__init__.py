from .chapters import chapters_identical, normalize_chapters, normalize_timestamp
from .tagging import read_stored_metadata, write_stored_metadata

__all__ = [
    "chapters_identical",
    "normalize_chapters",
    "normalize_timestamp",
    "read_stored_metadata",
    "write_stored_metadata",
]
