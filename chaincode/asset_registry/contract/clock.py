"""
Clock collaborator and timestamp renderings.

Two renderings of "now" are persisted:
- created_at: human readable DD/MM/YYYY HH:mm:ss
- expires_at: epoch seconds as a decimal string

All timestamps are taken in UTC so that every replica renders the same
created_at for the same instant.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

CREATED_AT_FORMAT = "%d/%m/%Y %H:%M:%S"


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Current time as a timezone-aware datetime."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Manually driven clock for tests and replays.

    Example:
        >>> clock = FixedClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        >>> clock.advance(minutes=9)
    """

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta: float) -> datetime:
        """Move forward by a timedelta given as keyword arguments."""
        self._now = self._now + timedelta(**delta)
        return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self._now = moment


def format_created_at(moment: datetime) -> str:
    """Render DD/MM/YYYY HH:mm:ss."""
    return moment.astimezone(timezone.utc).strftime(CREATED_AT_FORMAT)


def parse_created_at(text: str) -> datetime:
    """Inverse of format_created_at()."""
    return datetime.strptime(text, CREATED_AT_FORMAT).replace(tzinfo=timezone.utc)


def format_epoch(moment: datetime) -> str:
    """Render whole epoch seconds as a string."""
    return str(int(moment.timestamp()))
