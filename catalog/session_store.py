"""JSON persistence for the catalog login session."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from engine.paths import SESSION_PATH

logger = logging.getLogger(__name__)


@dataclass
class StoredCookie:
    name: str
    value: str
    domain: str = ""
    path: str = "/"
    expires: int | None = None  # epoch seconds, None for session cookies

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires is None:
            return False
        return int(self.expires) <= int(now if now is not None else time.time())


@dataclass
class SessionRecord:
    identity: str
    timestamp: float
    cookies: list[StoredCookie] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "timestamp": self.timestamp,
            "cookies": [
                {
                    "name": cookie.name,
                    "value": cookie.value,
                    "domain": cookie.domain,
                    "path": cookie.path,
                    "expires": cookie.expires,
                }
                for cookie in self.cookies
            ],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SessionRecord":
        cookies = []
        for row in payload.get("cookies") or []:
            if not isinstance(row, dict) or not row.get("name"):
                continue
            expires = row.get("expires")
            cookies.append(
                StoredCookie(
                    name=str(row["name"]),
                    value=str(row.get("value") or ""),
                    domain=str(row.get("domain") or ""),
                    path=str(row.get("path") or "/"),
                    expires=int(expires) if expires is not None else None,
                )
            )
        return cls(
            identity=str(payload.get("identity") or ""),
            timestamp=float(payload.get("timestamp") or 0.0),
            cookies=cookies,
        )


class SessionStore:
    """Single-record JSON file holding identity, cookies and save time."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path or SESSION_PATH)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SessionRecord | None:
        """Return the stored record, or ``None`` when absent or unreadable."""
        if not self._path.exists():
            return None
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("[SESSION] unreadable session cache at %s", self._path)
            return None
        if not isinstance(payload, dict):
            return None
        return SessionRecord.from_payload(payload)

    def save(self, record: SessionRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        tmp_path.write_text(json.dumps(record.to_payload(), ensure_ascii=True, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def clear(self) -> None:
        """Delete the stored record."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
