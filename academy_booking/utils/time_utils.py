"""Helpers for ``HH:MM`` clock strings and Sunday-based weekday indexes."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def clock_to_minutes(clock_time: str) -> int:
    hours, minutes = (int(part) for part in clock_time.split(":"))
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        raise ValueError(f"invalid clock time: {clock_time!r}")
    return hours * 60 + minutes


def add_minutes(clock_time: str, minutes: int) -> str:
    total = clock_to_minutes(clock_time) + minutes
    return f"{(total // 60) % 24:02d}:{total % 60:02d}"


def day_of_week_index(value: date) -> int:
    """Map a date to a Sunday=0 weekday index."""
    return (value.weekday() + 1) % 7


def slot_start(slot_date: Optional[str], start_time: str) -> Optional[datetime]:
    """Combine a slot's date and clock time into an aware UTC datetime."""
    if slot_date is None:
        return None
    day = date.fromisoformat(slot_date)
    hours, minutes = divmod(clock_to_minutes(start_time), 60)
    return datetime.combine(day, time(hours, minutes), tzinfo=timezone.utc)
