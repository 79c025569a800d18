"""
Integration Tests: SessionClient

Tests:
    - Full lifecycle against a manual clock
    - Recovery of a session left by a previous process
    - Event attribution for application events
    - Tolerance of failing stores and sinks
    - Serialization of concurrent callers
    - Metrics recorded per transition

Run: python -m pytest mobileanalytics/tests/test_client.py -v
"""

from __future__ import annotations

import threading
import time

import pytest
from redis.exceptions import TimeoutError as RedisTimeoutError

from mobileanalytics.core import constants as C
from mobileanalytics.core.config import AnalyticsConfig, AnalyticsContext, StoreConfig
from mobileanalytics.core.errors import ConfigurationError, ErrorCode, SessionStoreError
from mobileanalytics.core.types import Err, Timestamp
from mobileanalytics.event.client import InMemoryEventClient
from mobileanalytics.observability.metrics import MetricsCollector
from mobileanalytics.session.client import SessionClient, create_store
from mobileanalytics.session.model import Session
from mobileanalytics.session.state_machine import SessionState
from mobileanalytics.session.store import FileSessionStore, InMemorySessionStore
from mobileanalytics.session.redis_store import RedisSessionStore


START = C.SESSION_START_EVENT_TYPE
STOP = C.SESSION_STOP_EVENT_TYPE
PAUSE = C.SESSION_PAUSE_EVENT_TYPE
RESUME = C.SESSION_RESUME_EVENT_TYPE

# Matches the clock fixture
T0_MILLIS = 1_700_000_000_000


def at(offset_ms: int) -> Timestamp:
    return Timestamp.from_millis(T0_MILLIS + offset_ms)


class FailingStore:
    """Store whose every call fails, either by Err or by raising."""

    def __init__(self, raise_errors: bool = False) -> None:
        self.raise_errors = raise_errors
        self.calls: list[str] = []

    def _fail(self, action: str):
        self.calls.append(action)
        if self.raise_errors:
            raise OSError(f"{action} exploded")
        return Err(SessionStoreError.write_failed("nowhere"))

    def load(self):
        self.calls.append("load")
        if self.raise_errors:
            raise OSError("load exploded")
        return Err(SessionStoreError.read_failed("nowhere"))

    def save(self, session):
        return self._fail("save")

    def clear(self):
        return self._fail("clear")


class FailingSink:
    """Event sink that rejects everything."""

    def __init__(self) -> None:
        self.attempts: list[str] = []

    def emit(self, event_type, attributes, metrics, session):
        self.attempts.append(event_type)
        raise RuntimeError("sink offline")


class OverlapDetectingSink(InMemoryEventClient):
    """Records whether two emissions ever ran at the same time."""

    def __init__(self) -> None:
        super().__init__(max_events=100_000)
        self._inside = threading.Lock()
        self.overlaps = 0

    def emit(self, event_type, attributes, metrics, session):
        if not self._inside.acquire(blocking=False):
            self.overlaps += 1
            return
        try:
            time.sleep(0.0005)
            super().emit(event_type, attributes, metrics, session)
        finally:
            self._inside.release()


class TestLifecycle:
    """End-to-end lifecycle tests."""

    def test_initial_state(self, client, events, store):
        """A client over an empty store starts inactive and emits nothing."""
        assert client.state is SessionState.INACTIVE
        assert client.session is None
        assert client.session_context is None
        assert len(events) == 0
        assert store.write_count == 0

    def test_start(self, client, events, store):
        """Start emits _session.start and persists the new session."""
        outcome = client.start()

        assert client.state is SessionState.ACTIVE
        assert outcome.trigger == "START"
        (event,) = events.events
        assert event.event_type == START
        assert event.session_id == client.session.session_id
        assert event.attributes[C.SESSION_ID_ATTRIBUTE_KEY] == client.session.session_id
        assert event.attributes[C.SESSION_START_TIME_ATTRIBUTE_KEY] == "2023-11-14T22:13:20.000Z"
        assert store.record["session_id"] == client.session.session_id
        assert store.record["pause_time"] is None

    def test_pause_then_quick_resume(self, client, events, store, clock):
        """A resume within the delay keeps the same session."""
        client.start()
        session_id = client.session.session_id

        clock.advance(10_000)
        client.pause()
        assert client.state is SessionState.PAUSED
        assert store.record["pause_time"] == T0_MILLIS + 10_000

        clock.advance(2_000)
        client.resume()
        assert client.state is SessionState.ACTIVE
        assert client.session.session_id == session_id
        assert store.record["pause_time"] is None
        assert events.event_types() == [START, PAUSE, RESUME]
        assert {e.session_id for e in events.events} == {session_id}

    def test_resume_after_delay_restarts(self, client, events, clock):
        """A resume past the delay stops the old session and starts a new one."""
        client.start()
        old_id = client.session.session_id
        clock.advance(10_000)
        client.pause()
        clock.advance(6_000)

        client.resume()

        assert client.state is SessionState.ACTIVE
        assert client.session.session_id != old_id
        assert client.session.start_time == at(16_000)
        assert events.event_types() == [START, PAUSE, STOP, START]

        stop, start = events.events[2:]
        assert stop.session_id == old_id
        assert stop.metrics[C.SESSION_DURATION_METRIC_KEY] == 10_000.0
        assert stop.attributes[C.SESSION_STOP_TIME_ATTRIBUTE_KEY] == at(16_000).to_iso8601()
        assert start.session_id == client.session.session_id

    def test_resume_at_zero_elapsed(self, client, events):
        """Pause and resume in the same instant reattaches."""
        client.start()
        session_id = client.session.session_id
        client.pause()
        client.resume()
        assert client.session.session_id == session_id
        assert events.event_types() == [START, PAUSE, RESUME]

    def test_stop(self, client, events, store, clock):
        """Stop emits the duration and clears the store."""
        client.start()
        session_id = client.session.session_id
        clock.advance(42_000)

        client.stop()

        assert client.state is SessionState.INACTIVE
        assert client.session is None
        assert store.record is None
        stop = events.events[-1]
        assert stop.event_type == STOP
        assert stop.session_id == session_id
        assert stop.metrics == {C.SESSION_DURATION_METRIC_KEY: 42_000.0}

    def test_stop_while_paused(self, client, events, clock):
        """Stopping a paused session measures up to the pause point."""
        client.start()
        clock.advance(10_000)
        client.pause()
        clock.advance(40_000)
        client.stop()
        assert events.events[-1].metrics[C.SESSION_DURATION_METRIC_KEY] == 10_000.0

    def test_start_while_paused_restarts(self, client, events, clock):
        """Start on a paused session is stop followed by start."""
        client.start()
        first = client.session.session_id
        client.pause()
        clock.advance(1_000)
        outcome = client.start()

        assert outcome.trigger == "RESTART"
        assert client.state is SessionState.ACTIVE
        assert client.session.session_id != first
        assert events.event_types() == [START, PAUSE, STOP, START]

    def test_noops_emit_and_persist_nothing(self, client, events, store):
        """Operations invalid for the current state change nothing."""
        client.stop()
        client.pause()
        client.resume()
        assert client.state is SessionState.INACTIVE
        assert len(events) == 0
        assert store.write_count == 0

        client.start()
        writes = store.write_count
        session_id = client.session.session_id
        outcome = client.start()
        client.resume()

        assert outcome.is_noop
        assert client.session.session_id == session_id
        assert events.event_types() == [START]
        assert store.write_count == writes

    def test_double_pause_is_noop(self, client, events, clock):
        """A second pause keeps the first pause time."""
        client.start()
        client.pause()
        clock.advance(3_000)
        client.pause()
        assert client.session.pause_time == at(0)
        assert events.event_types() == [START, PAUSE]

    def test_session_ids_distinct(self, client, events):
        """Repeated start/stop in the same millisecond yields distinct ids."""
        for _ in range(20):
            client.start()
            client.stop()
        ids = [e.session_id for e in events.events if e.event_type == START]
        assert len(ids) == 20
        assert len(set(ids)) == 20

    def test_session_id_prefix(self, client, context):
        """Session ids begin with the install's client id prefix."""
        client.start()
        prefix = str(context.client_id).replace("-", "")[:8]
        assert client.session.session_id.startswith(f"{prefix}-20231114-221320000-")


class TestRecovery:
    """Tests for sessions left by a previous process."""

    def test_restore_paused_session(self, make_client, events, clock):
        """A paused record is restored and can be resumed."""
        previous = Session("prev-session", at(-60_000), pause_time=at(-1_000))
        client = make_client(store=InMemorySessionStore(previous))

        assert client.state is SessionState.PAUSED
        assert client.session.session_id == "prev-session"
        assert len(events) == 0

        client.resume()
        assert client.session.session_id == "prev-session"
        assert events.event_types() == [RESUME]

    def test_restore_expired_session(self, make_client, events):
        """Resuming a record paused long ago stops it and starts fresh."""
        previous = Session("prev-session", at(-60_000), pause_time=at(-30_000))
        client = make_client(store=InMemorySessionStore(previous))

        client.resume()

        assert events.event_types() == [STOP, START]
        stop = events.events[0]
        assert stop.session_id == "prev-session"
        assert stop.metrics[C.SESSION_DURATION_METRIC_KEY] == 30_000.0
        assert client.session.session_id != "prev-session"

    def test_restore_active_record_as_paused(self, make_client):
        """A record saved while active is treated as paused at its start."""
        previous = Session("crashed", at(-2_000))
        client = make_client(store=InMemorySessionStore(previous))

        assert client.state is SessionState.PAUSED
        assert client.session.pause_time == at(-2_000)

    def test_restore_stopped_record_is_discarded(self, make_client):
        """A stopped record yields an inactive client and an empty store."""
        previous = Session("done", at(-5_000), stop_time=at(-1_000))
        store = InMemorySessionStore(previous)
        client = make_client(store=store)

        assert client.state is SessionState.INACTIVE
        assert store.record is None

    def test_restore_across_clients_with_file_store(self, tmp_path, context, clock, metrics):
        """A second client over the same file resumes the first one's session."""
        path = tmp_path / "_session"
        first_events = InMemoryEventClient()
        first = SessionClient(context, first_events, FileSessionStore(path), clock=clock, metrics=metrics)
        first.start()
        first.pause()
        session_id = first.session.session_id

        clock.advance(1_000)
        second_events = InMemoryEventClient()
        second = SessionClient(context, second_events, FileSessionStore(path), clock=clock, metrics=metrics)
        assert second.state is SessionState.PAUSED

        second.resume()
        assert second.session.session_id == session_id
        assert second_events.event_types() == [RESUME]

    def test_load_failure_starts_inactive(self, make_client, metrics):
        """An unreadable store is logged and counted; the client starts empty."""
        client = make_client(store=FailingStore())
        assert client.state is SessionState.INACTIVE
        failures = metrics.counter("session_persistence_failures_total", ["action"])
        assert failures.get(action="load") == 1

    def test_corrupted_file_starts_inactive(self, tmp_path, make_client):
        """A corrupt record on disk does not prevent construction."""
        path = tmp_path / "_session"
        path.write_text("{broken")
        client = make_client(store=FileSessionStore(path))
        assert client.state is SessionState.INACTIVE


class TestAttribution:
    """Tests for record_event."""

    def test_without_session(self, client, events):
        """Events recorded while inactive carry no session."""
        client.record_event("app.open")
        (event,) = events.events
        assert event.event_type == "app.open"
        assert event.session_id is None
        assert not event.is_session_event

    def test_with_active_session(self, client, events):
        """Events recorded while active carry the session context."""
        client.start()
        client.record_event("app.tap", {"screen": "home"}, {"count": 2.0})
        event = events.events[-1]
        assert event.session_id == client.session.session_id
        assert event.session_start_time == at(0)
        assert event.attributes == {"screen": "home"}
        assert event.metrics == {"count": 2.0}

    def test_while_paused(self, client, events):
        """A paused session still attributes events."""
        client.start()
        client.pause()
        client.record_event("app.background_fetch")
        assert events.events[-1].session_id == client.session.session_id

    def test_after_stop(self, client, events):
        """Attribution ends with the session."""
        client.start()
        client.stop()
        client.record_event("app.close")
        assert events.events[-1].session_id is None

    def test_to_dict(self, client, events):
        """Recorded events serialize with their session block."""
        client.start()
        data = events.events[0].to_dict()
        assert data["event_type"] == START
        assert data["session"] == {
            "id": client.session.session_id,
            "startTimestamp": "2023-11-14T22:13:20.000Z",
        }


class TestFailureTolerance:
    """Collaborator failures never undo a transition."""

    @pytest.mark.parametrize("raise_errors", [False, True])
    def test_failing_store(self, make_client, events, metrics, raise_errors):
        """Store failures are counted and the lifecycle proceeds."""
        store = FailingStore(raise_errors=raise_errors)
        client = make_client(store=store)

        client.start()
        client.pause()
        client.stop()

        assert client.state is SessionState.INACTIVE
        assert events.event_types() == [START, PAUSE, STOP]
        assert store.calls == ["load", "save", "save", "clear"]
        failures = metrics.counter("session_persistence_failures_total", ["action"])
        assert failures.get(action="save") == 2
        assert failures.get(action="clear") == 1

    def test_failing_sink(self, make_client, store, metrics):
        """Sink failures are counted and state still advances."""
        sink = FailingSink()
        client = make_client(event_sink=sink)

        client.start()
        client.stop()

        assert client.state is SessionState.INACTIVE
        assert sink.attempts == [START, STOP]
        assert store.record is None
        failures = metrics.counter("session_emission_failures_total", ["event_type"])
        assert failures.get(event_type=START) == 1
        assert failures.get(event_type=STOP) == 1

    def test_failing_sink_on_restart_emits_both(self, make_client, clock):
        """A failed stop emission does not suppress the following start."""
        sink = FailingSink()
        client = make_client(event_sink=sink)
        client.start()
        client.pause()
        clock.advance(10_000)
        client.resume()
        assert sink.attempts == [START, PAUSE, STOP, START]

    def test_failing_sink_on_record_event(self, make_client):
        """record_event swallows sink failures."""
        client = make_client(event_sink=FailingSink())
        client.record_event("app.tap")


class TestConstruction:
    """Tests for constructor validation and factories."""

    @pytest.mark.parametrize("missing, name", [
        ("context", "AnalyticsContext"),
        ("event_sink", "EventSink"),
        ("store", "SessionStore"),
    ])
    def test_missing_collaborator(self, context, events, store, missing, name):
        """Each required collaborator is checked."""
        kwargs = {"context": context, "event_sink": events, "store": store}
        kwargs[missing] = None
        with pytest.raises(ConfigurationError) as exc_info:
            SessionClient(**kwargs)
        assert exc_info.value.code is ErrorCode.CONFIG_MISSING_COLLABORATOR
        assert exc_info.value.message == f"A valid {name} must be provided"

    def test_delays_exposed(self, client):
        """Configured delays are readable."""
        assert client.resume_delay_ms == 5_000
        assert client.restart_delay_ms == 30_000

    def test_create_memory_backend(self, events, clock, metrics):
        """create() builds the configured store."""
        context = AnalyticsContext.create(
            "app", config=AnalyticsConfig(store=StoreConfig(backend="memory"))
        )
        client = SessionClient.create(context, events, clock=clock, metrics=metrics)
        client.start()
        assert client.state is SessionState.ACTIVE

    def test_create_file_backend(self, tmp_path, events, clock, metrics):
        """The file backend writes under data_dir."""
        context = AnalyticsContext.create(
            "app", config=AnalyticsConfig(store=StoreConfig(backend="file", data_dir=tmp_path))
        )
        client = SessionClient.create(context, events, clock=clock, metrics=metrics)
        client.start()
        assert (tmp_path / "_session").exists()

    def test_create_store_backends(self, tmp_path):
        """create_store maps backend names to store classes."""
        def ctx(backend):
            return AnalyticsContext.create(
                "app", config=AnalyticsConfig(store=StoreConfig(backend=backend, data_dir=tmp_path))
            )

        assert isinstance(create_store(ctx("memory")), InMemorySessionStore)
        assert isinstance(create_store(ctx("file")), FileSessionStore)
        redis_store = create_store(ctx("redis"))
        try:
            assert isinstance(redis_store, RedisSessionStore)
        finally:
            redis_store.close()

        with pytest.raises(ConfigurationError):
            create_store(ctx("carrier-pigeon"))

    def test_create_requires_context(self, events):
        """create() checks the context before building a store."""
        with pytest.raises(ConfigurationError):
            SessionClient.create(None, events)

    def test_repr(self, client):
        """repr shows the session id and whether it is paused."""
        assert repr(client) == "[SessionClient]\n- session: <null>"
        client.start()
        session_id = client.session.session_id
        assert repr(client) == f"[SessionClient]\n- session: {session_id}"
        client.pause()
        assert repr(client) == f"[SessionClient]\n- session: {session_id}: paused"


class TestMetrics:
    """Tests for metrics recorded by the client."""

    def test_transition_counts(self, client, metrics, clock):
        """Each operation is counted by its outcome."""
        client.start()
        client.start()
        client.pause()
        clock.advance(60_000)
        client.resume()
        client.stop()

        transitions = metrics.counter("session_transitions_total", ["operation", "outcome"])
        assert transitions.get(operation="start", outcome="start") == 1
        assert transitions.get(operation="start", outcome="noop") == 1
        assert transitions.get(operation="pause", outcome="pause") == 1
        assert transitions.get(operation="resume", outcome="resume_expired") == 1
        assert transitions.get(operation="stop", outcome="stop") == 1

    def test_active_gauge(self, client, metrics):
        """The active gauge follows the foreground state."""
        gauge = metrics.gauge("session_active")
        client.start()
        assert gauge.get() == 1.0
        client.pause()
        assert gauge.get() == 0.0

    def test_duration_histogram(self, client, metrics, clock):
        """Stopped session durations are observed in seconds."""
        client.start()
        clock.advance(90_000)
        client.stop()
        histogram = metrics.histogram("session_duration_seconds")
        assert histogram.count() == 1
        (data,) = histogram.collect()
        assert data["sum"] == 90.0


class TestConcurrency:
    """Concurrent callers observe serialized transitions."""

    def test_concurrent_operations(self, context, store, clock):
        """Random interleavings never overlap emissions or break invariants."""
        sink = OverlapDetectingSink()
        client = SessionClient(context, sink, store, clock=clock, metrics=MetricsCollector())
        operations = [client.start, client.pause, client.resume, client.stop]
        errors: list[BaseException] = []

        def worker(offset: int) -> None:
            try:
                for i in range(50):
                    operations[(i + offset) % len(operations)]()
                    client.record_event("app.tick")
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sink.overlaps == 0
        assert client.state is SessionState.of(client.session)

        # Every start is matched by a stop except, possibly, the live session
        types = sink.event_types()
        starts, stops = types.count(START), types.count(STOP)
        live = 1 if client.session is not None else 0
        assert starts == stops + live

    def test_concurrent_starts_create_one_session(self, client, events):
        """Racing starts produce exactly one session."""
        barrier = threading.Barrier(10)

        def racer() -> None:
            barrier.wait()
            client.start()

        threads = [threading.Thread(target=racer) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert events.event_types() == [START]


class StallingRedis:
    """redis.Redis stand-in whose every command times out."""

    def __init__(self) -> None:
        self.commands: list[str] = []

    def _timeout(self, command: str):
        self.commands.append(command)
        raise RedisTimeoutError("Timeout reading from socket")

    def get(self, key):
        return self._timeout("GET")

    def set(self, key, value):
        return self._timeout("SET")

    def delete(self, key):
        return self._timeout("DEL")


class TestStoreErrorReporting:
    """Store failures are logged with their error code and counted."""

    def test_redis_timeouts_do_not_block_transitions(self, make_client, events, metrics):
        """A timed-out Redis store is reported per call; the lifecycle completes."""
        redis_client = StallingRedis()
        client = make_client(store=RedisSessionStore(redis_client, key="ma:session:t"))

        client.start()
        client.pause()
        client.resume()
        client.stop()

        assert client.state is SessionState.INACTIVE
        assert events.event_types() == [START, PAUSE, RESUME, STOP]
        assert redis_client.commands == ["GET", "SET", "SET", "SET", "DEL"]
        failures = metrics.counter("session_persistence_failures_total", ["action"])
        assert failures.get(action="load") == 1
        assert failures.get(action="save") == 3
        assert failures.get(action="clear") == 1

    def test_warning_carries_error_code(self, make_client, caplog):
        """The warning for a failed save names the store error code."""
        client = make_client(store=FailingStore())
        with caplog.at_level("WARNING", logger="mobileanalytics.session.client"):
            client.start()

        codes = [getattr(r, "error_code", None) for r in caplog.records]
        assert "STORE_WRITE_FAILED" in codes
