"""Small helpers shared by the capture, batch and report modules."""

from __future__ import annotations

import re
import traceback
from datetime import datetime, timedelta, timezone
from typing import Any


def format_error(exc: BaseException) -> dict[str, Any]:
    """Return ``{message, stack, timestamp}`` for logging and error events."""
    return {
        "message": str(exc) or type(exc).__name__,
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def slugify_url(url: str, max_length: int = 50) -> str:
    """Turn a URL into a filesystem-friendly fragment."""
    stripped = re.sub(r"^https?://", "", url)
    return re.sub(r"[^a-zA-Z0-9]", "_", stripped)[:max_length]


def format_bytes(size: int) -> str:
    """Format a byte count as a short human-readable string."""
    if size <= 0:
        return "0 B"
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{round(value, 2):g} {unit}"
        value /= 1024
    return f"{round(value, 2):g} GB"


def local_now(utc_offset_hours: float) -> datetime:
    """Return the current time in a fixed UTC offset."""
    return datetime.now(timezone(timedelta(hours=utc_offset_hours)))


def filename_timestamp(moment: datetime) -> str:
    """Format *moment* as ``YYYY-MM-DDTHH-MM-SS`` for use in file names."""
    return moment.strftime("%Y-%m-%dT%H-%M-%S")
