"""
Event Client: Sink for Session Lifecycle and Application Events

The session client hands every event to an EventSink together with the
SessionContext it belongs to. Delivery (batching, upload, retry) is the
sink's concern; from the session client's side emission is
fire-and-forget.

InMemoryEventClient is the reference sink: a bounded, thread-safe buffer
that drops the oldest events once full.
"""

from __future__ import annotations

import logging
import threading
from abc import abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Optional, Protocol, runtime_checkable

from mobileanalytics.core import constants as C
from mobileanalytics.core.types import Timestamp

if TYPE_CHECKING:
    from mobileanalytics.session.model import SessionContext

logger = logging.getLogger(__name__)


@runtime_checkable
class EventSink(Protocol):
    """Accepts typed events with attributes, metrics and session attribution."""

    @abstractmethod
    def emit(
        self,
        event_type: str,
        attributes: Mapping[str, str],
        metrics: Mapping[str, float],
        session: Optional[SessionContext],
    ) -> None:
        ...


@dataclass(frozen=True, slots=True)
class AnalyticsEvent:
    """An event as recorded by InMemoryEventClient."""

    event_type: str
    attributes: dict[str, str] = field(default_factory=dict)
    metrics: dict[str, float] = field(default_factory=dict)
    session_id: Optional[str] = None
    session_start_time: Optional[Timestamp] = None
    recorded_at: Timestamp = field(default_factory=Timestamp.now)

    @property
    def is_session_event(self) -> bool:
        return self.event_type.startswith("_session.")

    def to_dict(self) -> dict:
        data: dict = {
            "event_type": self.event_type,
            "attributes": dict(self.attributes),
            "metrics": dict(self.metrics),
            "timestamp": self.recorded_at.to_iso8601(),
        }
        if self.session_id is not None:
            data["session"] = {
                "id": self.session_id,
                "startTimestamp": self.session_start_time.to_iso8601()
                if self.session_start_time else None,
            }
        return data


class InMemoryEventClient:
    """
    Bounded in-process event buffer.

    Usage:
        events = InMemoryEventClient(max_events=500)
        client = SessionClient(context, events, store)
        client.start()
        events.event_types()  # ["_session.start"]
    """

    __slots__ = ("_events", "_lock", "_dropped")

    def __init__(self, max_events: int = C.DEFAULT_EVENT_BUFFER_SIZE) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be > 0")
        self._events: deque[AnalyticsEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._dropped = 0

    def emit(
        self,
        event_type: str,
        attributes: Mapping[str, str],
        metrics: Mapping[str, float],
        session: Optional[SessionContext],
    ) -> None:
        event = AnalyticsEvent(
            event_type=event_type,
            attributes=dict(attributes),
            metrics=dict(metrics),
            session_id=session.session_id if session else None,
            session_start_time=session.start_time if session else None,
        )
        with self._lock:
            if len(self._events) == self._events.maxlen:
                self._dropped += 1
            self._events.append(event)
        logger.debug(f"Recorded event {event_type}")

    @property
    def events(self) -> list[AnalyticsEvent]:
        with self._lock:
            return list(self._events)

    @property
    def dropped(self) -> int:
        """Events evicted because the buffer was full."""
        with self._lock:
            return self._dropped

    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def drain(self) -> list[AnalyticsEvent]:
        """Remove and return all buffered events, oldest first."""
        with self._lock:
            drained = list(self._events)
            self._events.clear()
        return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
