# src/logging/handlers.py — v1
"""Size-rotated log file handler.

Used by setup_logging() when LOG_FILE is configured. Rotation size comes
from LOG_ROTATION ("512KB", "10MB", "1GB"), backup count from LOG_RETENTION.
"""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+)\s*(B|KB|MB|GB)$", re.IGNORECASE)
_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def _parse_size(size_str: str) -> int:
    """Convert a size string such as '10MB' to a byte count."""
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _UNITS[match.group(2).upper()]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 5,
) -> RotatingFileHandler:
    """Build a RotatingFileHandler, creating the parent directory if needed.

    Raises:
        ValueError: If rotation is not a valid size string or retention < 0.
    """
    if retention < 0:
        raise ValueError("retention must be >= 0")
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=_parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
