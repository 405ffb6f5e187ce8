from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, List

from . import config

LOGGER = logging.getLogger("order_exporter")
LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Path of the file handler currently attached to LOGGER; None until first use.
_active_log_path: Path | None = None

_WHITESPACE_RE = re.compile(r"\s+")


def _build_handlers(log_path: Path) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: List[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_path, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def _attach_log_file(log_path: Path) -> None:
    """Point the shared logger at ``log_path`` (and stdout), replacing old handlers."""

    global _active_log_path

    ensure_dirs()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    for old in LOGGER.handlers[:]:
        LOGGER.removeHandler(old)
        old.close()

    for handler in _build_handlers(log_path):
        LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.INFO)
    LOGGER.propagate = False
    _active_log_path = log_path


def setup_run_logger() -> Path:
    """Start a timestamped ``export_<ts>.log`` for the current export run."""

    log_path = config.LOG_DIR / f"export_{datetime.utcnow():%Y%m%d_%H%M%S}.log"
    _attach_log_file(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def get_current_log_path() -> Path:
    if _active_log_path is None:
        _attach_log_file(config.LOG_FILE)
    return _active_log_path


def ensure_dirs() -> None:
    for directory in (config.DATA_DIR, config.LOG_DIR, config.EXPORTS_DIR):
        directory.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Log ``message`` to stdout and the active log file."""

    if _active_log_path is None:
        _attach_log_file(config.LOG_FILE)
    LOGGER.info(message)


def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace and strip the ends."""

    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def to_full_url(path: str | None) -> str:
    """Resolve a site-relative path against ``config.BASE_URL``."""

    if not path:
        return ""
    path = path.strip()
    if path.startswith("http"):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return config.BASE_URL + path


def utc_now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def load_json_file(path: Path) -> Any:
    """Return the decoded JSON document at ``path``, or ``None`` if absent or unreadable."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        log_line(f"[STATE] Failed to read {path}: {exc}")
        return None


def save_json_file(path: Path, payload: Any) -> None:
    """Write ``payload`` next to ``path`` and swap it in with one rename."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)
    tmp_path.replace(path)


__all__ = [
    "LOGGER",
    "ensure_dirs",
    "setup_run_logger",
    "get_current_log_path",
    "log_line",
    "clean_text",
    "to_full_url",
    "utc_now_iso",
    "load_json_file",
    "save_json_file",
]
