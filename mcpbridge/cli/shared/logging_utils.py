"""Loguru helpers for consistent logging in CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>"

_SINK_IDS: dict[str, int] = {}


def configure_logging(level: str = "INFO", log_file: str | None = None) -> Path | None:
    """Replace the default sink with a stderr sink at ``level``; optionally add a file sink."""
    logger.remove()
    _SINK_IDS.clear()
    _SINK_IDS["stderr"] = logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)
    if log_file:
        return ensure_rotating_log_file(Path(log_file), level=level)
    return None


def ensure_rotating_log_file(log_path: Path, level: str = "INFO") -> Path:
    """Ensure a rotating log sink at ``log_path``."""
    log_path = log_path.expanduser()
    key = str(log_path)
    if key in _SINK_IDS:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    _SINK_IDS[key] = logger.add(
        key,
        level=level.upper(),
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    return log_path
