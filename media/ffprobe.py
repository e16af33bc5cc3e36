"""Wrapper utilities for retrieving media information using ffprobe."""

from __future__ import annotations

import json
import subprocess
from typing import Any

from metadata.types import ExistingChapter


def _run_ffprobe(file_path: str, *show_flags: str) -> dict[str, Any]:
    command = ["ffprobe", "-v", "error", "-print_format", "json", *show_flags, file_path]

    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=True,
            timeout=15,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("ffprobe is not installed or not available in PATH") from exc
    except subprocess.TimeoutExpired as exc:
        raise RuntimeError(f"ffprobe timed out while probing: {file_path}") from exc
    except subprocess.CalledProcessError as exc:
        stderr_text = (exc.stderr or "").strip()
        raise RuntimeError(f"ffprobe failed for {file_path}: {stderr_text or exc}") from exc

    try:
        payload = json.loads(completed.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise ValueError(f"ffprobe returned invalid JSON for {file_path}") from exc
    return payload if isinstance(payload, dict) else {}


def get_media_duration(file_path: str) -> float:
    """Return media duration in seconds using ``ffprobe`` JSON output.

    Raises:
        RuntimeError: If ``ffprobe`` execution fails or the command is missing.
        ValueError: If duration data is missing or not parseable as a float.
    """
    payload = _run_ffprobe(file_path, "-show_format")

    duration_value = (payload.get("format") or {}).get("duration")
    if duration_value in (None, ""):
        raise ValueError(f"ffprobe did not return a duration for {file_path}")

    try:
        return float(duration_value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"ffprobe returned a non-numeric duration for {file_path}") from exc


def get_media_duration_minutes(file_path: str) -> int | None:
    """Rounded duration in minutes, or ``None`` when the probe fails."""
    try:
        return int(round(get_media_duration(file_path) / 60.0))
    except (RuntimeError, ValueError):
        return None


def format_chapter_seconds(seconds: float) -> str:
    """``5.25`` -> ``00:00:05.250000``; microsecond precision like ffprobe reports."""
    total_micros = int(round(float(seconds) * 1_000_000))
    whole, micros = divmod(total_micros, 1_000_000)
    hours, remainder = divmod(whole, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{micros:06d}"


def get_media_chapters(file_path: str) -> list[ExistingChapter] | None:
    """Return embedded chapters in file order, or ``None`` when the file has none."""
    payload = _run_ffprobe(file_path, "-show_chapters")
    chapters = []
    for row in payload.get("chapters") or []:
        if not isinstance(row, dict):
            continue
        start = row.get("start_time")
        try:
            timestamp = format_chapter_seconds(float(start))
        except (TypeError, ValueError):
            continue
        title = str((row.get("tags") or {}).get("title") or "")
        chapters.append(ExistingChapter(timestamp=timestamp, title=title))
    return chapters or None
