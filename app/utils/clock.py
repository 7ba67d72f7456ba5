"""Timestamp helpers for response metadata."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_local(moment: datetime, tz_name: str) -> str:
    """Render ``moment`` as ``DD.MM.YYYY HH:MM:SS`` in the given timezone."""
    return moment.astimezone(ZoneInfo(tz_name)).strftime("%d.%m.%Y %H:%M:%S")


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
