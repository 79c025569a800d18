"""
Clock Protocol: Injectable Wall-Clock Time Source

The session client never reads the system time directly; every
timestamp comes from a Clock so tests and demos can drive time by hand.
"""

from __future__ import annotations

import threading
from abc import abstractmethod
from typing import Protocol, runtime_checkable

from mobileanalytics.core.constants import NS_PER_MS
from mobileanalytics.core.types import Timestamp


@runtime_checkable
class Clock(Protocol):
    """Wall-clock time source."""

    @abstractmethod
    def now(self) -> Timestamp:
        ...


class SystemClock:
    """Clock backed by time.time_ns()."""

    __slots__ = ()

    def now(self) -> Timestamp:
        return Timestamp.now()


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock.at_millis(1_700_000_000_000)
        client.pause()
        clock.advance(6_000)
        client.resume()
    """

    __slots__ = ("_nanos", "_lock")

    def __init__(self, start: Timestamp | None = None) -> None:
        self._nanos = (start or Timestamp.now()).nanos
        self._lock = threading.Lock()

    @classmethod
    def at_millis(cls, millis: int) -> ManualClock:
        return cls(Timestamp.from_millis(millis))

    def now(self) -> Timestamp:
        with self._lock:
            return Timestamp(nanos=self._nanos)

    def advance(self, millis: int) -> Timestamp:
        """Move forward (or backward, for negative values) and return the new time."""
        with self._lock:
            self._nanos += millis * NS_PER_MS
            return Timestamp(nanos=self._nanos)

    def set(self, timestamp: Timestamp) -> None:
        with self._lock:
            self._nanos = timestamp.nanos
