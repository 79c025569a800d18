"""
Shared fixtures for the session client test suite.

Every client is driven by a ManualClock pinned to a fixed instant and
records into a private MetricsCollector, so tests never observe each
other's metrics or the wall clock.
"""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from mobileanalytics.core.clock import ManualClock
from mobileanalytics.core.config import AnalyticsConfig, AnalyticsContext, SessionConfig
from mobileanalytics.core.types import ClientId
from mobileanalytics.event.client import InMemoryEventClient
from mobileanalytics.observability.metrics import MetricsCollector
from mobileanalytics.session.client import SessionClient
from mobileanalytics.session.store import InMemorySessionStore, SessionStore

# 2023-11-14T22:13:20.000Z
T0_MILLIS = 1_700_000_000_000

TEST_CLIENT_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock.at_millis(T0_MILLIS)


@pytest.fixture
def events() -> InMemoryEventClient:
    return InMemoryEventClient()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def context() -> AnalyticsContext:
    return AnalyticsContext(
        app_id="test-app",
        client_id=ClientId.from_string(TEST_CLIENT_ID).unwrap(),
        config=AnalyticsConfig(session=SessionConfig(resume_delay_ms=5000, restart_delay_ms=30000)),
    )


@pytest.fixture
def make_client(
    context: AnalyticsContext,
    events: InMemoryEventClient,
    store: InMemorySessionStore,
    clock: ManualClock,
    metrics: MetricsCollector,
) -> Callable[..., SessionClient]:
    """Factory so tests can swap a single collaborator."""

    def _make(
        *,
        store: Optional[SessionStore] = store,
        event_sink=events,
        context: AnalyticsContext = context,
    ) -> SessionClient:
        return SessionClient(context, event_sink, store, clock=clock, metrics=metrics)

    return _make


@pytest.fixture
def client(make_client: Callable[..., SessionClient]) -> SessionClient:
    return make_client()
