"""
Event module: the sink contract and the in-memory reference client.
"""

from mobileanalytics.event.client import (
    EventSink,
    AnalyticsEvent,
    InMemoryEventClient,
)

__all__ = [
    "EventSink",
    "AnalyticsEvent",
    "InMemoryEventClient",
]
