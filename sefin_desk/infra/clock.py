from __future__ import annotations

from datetime import UTC, datetime, timedelta


class SystemClock:
    """Wall clock in the host's local timezone.

    "Signed today" windows are computed on the caller's local calendar day,
    so the returned datetime always carries the local offset.
    """

    def now(self) -> datetime:
        return datetime.now().astimezone()


class FixedClock:
    def __init__(self, current: datetime) -> None:
        if current.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._current = current

    def advance(self, **kwargs: float) -> datetime:
        self._current = self._current + timedelta(**kwargs)
        return self._current


def local_day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """UTC bounds of the calendar day ``now`` falls on, in ``now``'s own offset."""
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start.astimezone(UTC), (start + timedelta(days=1)).astimezone(UTC)
