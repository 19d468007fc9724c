"""
Clock abstractions for deterministic behavior.

Notes
-----
Field modification stamps drive last-writer-wins replication, so the store
never reads wall-clock time directly. Callers provide a Clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """A source of time for deterministic behavior."""

    def now(self) -> datetime:
        """
        Return the current time.

        Returns
        -------
        datetime
            A timezone-aware datetime.
        """
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Clock that returns the current system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass(slots=True)
class SteppingClock:
    """
    Clock that advances by a fixed step on every call (useful for tests).

    Attributes
    ----------
    start:
        Time returned by the first call.
    step_seconds:
        Seconds added after each call.
    """

    start: datetime
    step_seconds: float = 1.0

    def now(self) -> datetime:
        current = self.start if self.start.tzinfo else self.start.replace(tzinfo=timezone.utc)
        self.start = current + timedelta(seconds=self.step_seconds)
        return current


def format_stamp(moment: datetime) -> str:
    """
    Render a datetime as a sortable UTC stamp.

    Stamps use a fixed-width ISO-8601 form so that lexical order equals
    chronological order.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")
