"""Utility helpers for the TubeCurator service."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any


ISO_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def parse_duration_seconds(value: str | None) -> int | None:
    """Return the number of seconds in an ISO-8601 ``PT#H#M#S`` duration."""

    if not value:
        return None
    match = ISO_DURATION_RE.match(value.strip())
    if not match or not any(match.groups()):
        return None
    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_duration(value: str | None) -> str:
    """Render an ISO-8601 duration as ``H:MM:SS`` or ``M:SS``."""

    total = parse_duration_seconds(value)
    if total is None:
        return ""
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_view_count(value: Any) -> str:
    """Abbreviate large counts (``1.2M``, ``3.4K``)."""

    try:
        number = int(value)
    except (TypeError, ValueError):
        return "0"
    if number >= 1_000_000:
        return f"{number / 1_000_000:.1f}M"
    if number >= 1_000:
        return f"{number / 1_000:.1f}K"
    return str(number)


def to_rfc3339(value: datetime) -> str:
    """Format a datetime the way the YouTube API expects (UTC, ``Z`` suffix)."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
