import os
from dataclasses import dataclass
from pathlib import Path


def _default_data_dir():
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "setlistr"
    return Path.home() / ".local" / "share" / "setlistr"


DATA_DIR = Path(os.environ.get("SETLISTR_DATA_DIR", _default_data_dir())).resolve()
LOG_DIR = Path(os.environ.get("SETLISTR_LOG_DIR", DATA_DIR / "logs")).resolve()
TOKENS_DIR = Path(os.environ.get("SETLISTR_TOKENS_DIR", DATA_DIR / "tokens")).resolve()
SESSION_PATH = Path(os.environ.get("SETLISTR_SESSION_PATH", TOKENS_DIR / "catalog_session.json")).resolve()


@dataclass(frozen=True)
class EnginePaths:
    log_dir: str
    session_path: str


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)


def build_engine_paths():
    for d in (LOG_DIR, SESSION_PATH.parent):
        ensure_dir(d)

    return EnginePaths(
        log_dir=str(LOG_DIR),
        session_path=str(SESSION_PATH),
    )
