"""Shared utility functions."""

from __future__ import annotations

import math
import re
import time
from datetime import datetime, timezone
from typing import Any

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")

# Epoch values above this are milliseconds (year 5138 in seconds)
_MILLIS_THRESHOLD = 100_000_000_000

# Largest epoch datetime can render in any local timezone (9999-12-30 UTC)
_MAX_SECONDS = 253_402_214_399

DAY_SECONDS = 86400


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    elif size_bytes < 1024 ** 4:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
    else:
        return f"{size_bytes / 1024 ** 4:.2f} TB"


def parse_int_prefix(value: Any) -> int | None:
    """Leading integer of *value* ("100", " 42abc", 7.9), or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    m = _INT_PREFIX.match(str(value)) if value is not None else None
    return int(m.group(1)) if m else None


def to_unix_seconds(value: Any) -> int | None:
    """
    Normalize a timestamp to whole Unix seconds.

    Accepts datetimes, ISO-8601 strings, and epoch numbers in seconds or
    milliseconds (numeric strings included).  Naive datetimes are taken as
    UTC.  Returns None for missing, unparseable, pre-epoch or far-future values.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        seconds = dt.timestamp()
    elif isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            seconds = float(text)
        except ValueError:
            try:
                dt = datetime.fromisoformat(_LONG_FRACTION.sub(r"\1", text))
            except ValueError:
                return None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            seconds = dt.timestamp()

    if not math.isfinite(seconds):
        return None
    if abs(seconds) >= _MILLIS_THRESHOLD:
        seconds /= 1000
    if seconds <= 0 or seconds > _MAX_SECONDS:
        return None
    return math.floor(seconds)


def day_suffix(day: int) -> str:
    """English ordinal suffix: 1st, 2nd, 3rd, 11th ..."""
    if 11 <= day <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def truncate_middle(text: str, max_length: int) -> str:
    if not text or len(text) <= max_length:
        return text
    start = math.ceil(max_length / 2) - 2
    end = math.floor(max_length / 2) - 2
    return text[:start] + "..." + text[len(text) - end:]


def format_relative_time(timestamp: int, now: float | None = None) -> str:
    """Short "3h ago" style rendering of a Unix timestamp."""
    if not timestamp:
        return "never"
    now = time.time() if now is None else now
    diff = int(now - timestamp)
    if diff < 60:
        return "just now"
    if diff < 3600:
        return f"{diff // 60}m ago"
    if diff < DAY_SECONDS:
        return f"{diff // 3600}h ago"
    return f"{diff // DAY_SECONDS}d ago"


def format_absolute_time(timestamp: int) -> str:
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


def age_bucket(timestamp: int, now: float | None = None) -> str:
    """Freshness class of a backup: fresh / recent / aging / stale."""
    if not timestamp:
        return "unknown"
    now = time.time() if now is None else now
    days = (now - timestamp) / DAY_SECONDS
    if days < 3:
        return "fresh"
    if days < 7:
        return "recent"
    if days < 30:
        return "aging"
    return "stale"
