"""File-level tags that remember which tracklist a recording was chaptered from."""

from __future__ import annotations

import logging
import os
from typing import Any

from mutagen.flac import FLAC
from mutagen.id3 import ID3, TXXX, ID3NoHeaderError
from mutagen.mp4 import MP4, MP4FreeForm
from mutagen.oggopus import OggOpus
from mutagen.oggvorbis import OggVorbis

from metadata.types import StoredMetadata

_LOG = logging.getLogger(__name__)

URL_TAG = "TRACKLIST_URL"
TITLE_TAG = "TRACKLIST_TITLE"
_MP4_FREEFORM_PREFIX = "----:com.apple.iTunes:"

_VORBIS_FORMATS = {".flac": FLAC, ".ogg": OggVorbis, ".oga": OggVorbis, ".opus": OggOpus}
_MP4_FORMATS = {".m4a", ".mp4", ".m4v", ".m4b"}


def _extension(path: str) -> str:
    return os.path.splitext(path)[1].lower()


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).strip()
    return text or None


def write_stored_metadata(path: str, metadata: StoredMetadata) -> None:
    """Persist the canonical tracklist URL and title as global tags."""
    ext = _extension(path)
    if ext == ".mp3":
        _write_id3(path, metadata)
    elif ext in _VORBIS_FORMATS:
        _write_vorbis(path, metadata, _VORBIS_FORMATS[ext])
    elif ext in _MP4_FORMATS:
        _write_mp4(path, metadata)
    else:
        raise ValueError(f"Unsupported file format for tracklist tags: {ext or '(none)'}")
    _LOG.info("Stored tracklist reference %s in %s", metadata.url, path)


def read_stored_metadata(path: str) -> StoredMetadata | None:
    """Return the stored reference, or ``None`` when the file carries no URL tag."""
    ext = _extension(path)
    if ext == ".mp3":
        url, title = _read_id3(path)
    elif ext in _VORBIS_FORMATS:
        url, title = _read_vorbis(path, _VORBIS_FORMATS[ext])
    elif ext in _MP4_FORMATS:
        url, title = _read_mp4(path)
    else:
        raise ValueError(f"Unsupported file format for tracklist tags: {ext or '(none)'}")
    if not url:
        return None
    return StoredMetadata(url=url, title=title or "")


def _write_id3(path: str, metadata: StoredMetadata) -> None:
    try:
        audio = ID3(path)
    except ID3NoHeaderError:
        audio = ID3()
    for desc, value in ((URL_TAG, metadata.url), (TITLE_TAG, metadata.title)):
        audio.delall(f"TXXX:{desc}")
        if _clean(value):
            audio.add(TXXX(encoding=3, desc=desc, text=[_clean(value)]))
    audio.save(path, v2_version=4)


def _read_id3(path: str) -> tuple[str | None, str | None]:
    try:
        audio = ID3(path)
    except ID3NoHeaderError:
        return None, None
    values = {}
    for frame in audio.getall("TXXX"):
        if frame.desc in (URL_TAG, TITLE_TAG) and frame.text:
            values[frame.desc] = _clean(frame.text[0])
    return values.get(URL_TAG), values.get(TITLE_TAG)


def _write_vorbis(path: str, metadata: StoredMetadata, file_cls: Any) -> None:
    audio = file_cls(path)
    if audio.tags is None:
        audio.add_tags()
    for key, value in ((URL_TAG, metadata.url), (TITLE_TAG, metadata.title)):
        text = _clean(value)
        if text:
            audio[key] = [text]
        elif key in audio.tags:
            del audio[key]
    audio.save()


def _read_vorbis(path: str, file_cls: Any) -> tuple[str | None, str | None]:
    audio = file_cls(path)
    if audio.tags is None:
        return None, None

    def _first(key: str) -> str | None:
        values = audio.tags.get(key) or []
        return _clean(values[0]) if values else None

    return _first(URL_TAG), _first(TITLE_TAG)


def _write_mp4(path: str, metadata: StoredMetadata) -> None:
    audio = MP4(path)
    if audio.tags is None:
        audio.add_tags()
    for key, value in ((URL_TAG, metadata.url), (TITLE_TAG, metadata.title)):
        atom = f"{_MP4_FREEFORM_PREFIX}{key}"
        text = _clean(value)
        if text:
            audio[atom] = [MP4FreeForm(text.encode("utf-8"))]
        elif atom in audio.tags:
            del audio[atom]
    audio.save()


def _read_mp4(path: str) -> tuple[str | None, str | None]:
    audio = MP4(path)
    if audio.tags is None:
        return None, None

    def _first(key: str) -> str | None:
        values = audio.tags.get(f"{_MP4_FREEFORM_PREFIX}{key}") or []
        return _clean(bytes(values[0])) if values else None

    return _first(URL_TAG), _first(TITLE_TAG)
