from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from . import config

LOGGER = logging.getLogger("harvester")
_FORMATTER = logging.Formatter(fmt="[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
_current_log_file: Optional[Path] = None


def _attach_log_file(log_path: Path) -> None:
    """Send the ``harvester`` logger to stdout and ``log_path`` only."""

    global _current_log_file

    log_path.parent.mkdir(parents=True, exist_ok=True)
    for old in list(LOGGER.handlers):
        LOGGER.removeHandler(old)
        old.close()

    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_path, encoding="utf-8")):
        handler.setFormatter(_FORMATTER)
        LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.INFO)
    LOGGER.propagate = False
    _current_log_file = log_path


def setup_run_logger() -> Path:
    """Start a ``harvest_<utc timestamp>.log`` file for the run about to begin."""

    log_path = config.LOG_DIR / f"harvest_{datetime.utcnow():%Y%m%d_%H%M%S}.log"
    _attach_log_file(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def get_current_log_path() -> Path:
    if _current_log_file is None:
        _attach_log_file(config.LOG_FILE)
    return _current_log_file


def ensure_dirs() -> None:
    """Ensure that the harvester's data directories exist."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    config.SNAPSHOT_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    if _current_log_file is None:
        _attach_log_file(config.LOG_FILE)
    LOGGER.info(message)


def sanitize_filename(name: str) -> str:
    """Replace anything but alphanumerics and ``._-`` with ``_``."""

    cleaned = "".join(
        ch if ch.isalnum() or ch in {".", "_", "-"} else "_"
        for ch in name.strip()
    ).strip("._")

    return cleaned or "file"


def save_json_file(path: Path, payload: Any) -> None:
    """Persist ``payload`` as JSON atomically."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2, default=str)
    tmp_path.replace(path)
