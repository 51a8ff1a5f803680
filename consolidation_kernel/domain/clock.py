"""
Clock -- Injectable time source.

Responsibility:
    Services and the run orchestrator receive a Clock instead of calling
    ``datetime.now()`` so that run timestamps and step durations are
    reproducible in tests.

Architecture position:
    Kernel > Domain. SystemClock is the one sanctioned I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Production clock returning actual system time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Contract:
        Returns ``fixed_time`` and, when ``step`` is given, moves forward by
        ``step`` after every read. Step durations recorded by the
        orchestrator then come out as exact multiples of ``step``.
    """

    def __init__(
        self,
        fixed_time: datetime | None = None,
        step: timedelta | None = None,
    ):
        self._current = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        self._step = step or timedelta(0)

    def now(self) -> datetime:
        current = self._current
        self._current = current + self._step
        return current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)
