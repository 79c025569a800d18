"""
Session Client: Application Session Lifecycle Manager

Tracks the application's foreground/background session across pause,
resume and restart boundaries and reports it as session events:

    - _session.start  : beginning of an application session
    - _session.stop   : end of an application session (carries duration)
    - _session.pause  : session moved to the background
    - _session.resume : session reattached within the resume delay

While a session exists, every event emitted through record_event() is
attributed to it by passing its SessionContext to the event sink.

Concurrency:
    start/stop/pause/resume/record_event run under one per-instance lock.
    Each call observes the fully settled result of the previous one;
    persistence and emission for one transition never interleave with
    another's.

Failure semantics:
    The in-memory state is the source of truth. Store and sink failures
    are logged and counted, never raised, and never undo a transition.
"""

from __future__ import annotations

import threading
from typing import Mapping, Optional

from mobileanalytics.core import constants as C
from mobileanalytics.core.clock import Clock, SystemClock
from mobileanalytics.core.config import AnalyticsContext
from mobileanalytics.core.errors import (
    ConfigurationError,
    EventDeliveryError,
    SessionStoreError,
)
from mobileanalytics.core.types import Result, Err, Timestamp
from mobileanalytics.event.client import EventSink
from mobileanalytics.observability.logging import StructuredLogger
from mobileanalytics.observability.metrics import MetricsCollector
from mobileanalytics.session.model import Session, SessionContext
from mobileanalytics.session.redis_store import RedisSessionStore
from mobileanalytics.session.state_machine import (
    Operation,
    PersistAction,
    SessionEvent,
    SessionState,
    TransitionOutcome,
    transition,
)
from mobileanalytics.session.store import (
    FileSessionStore,
    InMemorySessionStore,
    SessionStore,
)

logger = StructuredLogger(__name__)


def create_store(context: AnalyticsContext) -> SessionStore:
    """Build the session store selected by ``context.config.store``."""
    config = context.config.store
    match config.backend:
        case "memory":
            return InMemorySessionStore()
        case "redis":
            return RedisSessionStore.from_config(config, context.client_id)
        case "file":
            return FileSessionStore.from_config(config)
    raise ConfigurationError.invalid_value(
        "store.backend", config.backend, "expected memory, file or redis"
    )


class _SessionMetrics:
    """Metric handles used by one client."""

    __slots__ = ("transitions", "persistence_failures", "emission_failures", "active", "durations")

    def __init__(self, collector: MetricsCollector) -> None:
        self.transitions = collector.counter(
            "session_transitions_total",
            ["operation", "outcome"],
            "Session client operations by resulting transition",
        )
        self.persistence_failures = collector.counter(
            "session_persistence_failures_total",
            ["action"],
            "Session store calls that failed",
        )
        self.emission_failures = collector.counter(
            "session_emission_failures_total",
            ["event_type"],
            "Events the sink failed to accept",
        )
        self.active = collector.gauge(
            "session_active",
            help_text="1 while a session is in the foreground",
        )
        self.durations = collector.histogram(
            "session_duration_seconds",
            help_text="Duration of stopped sessions",
        )


class SessionClient:
    """
    Lifecycle manager for one application install.

    Usage:
        context = AnalyticsContext.create(app_id="my-app")
        client = SessionClient.create(context, InMemoryEventClient())

        client.start()     # on launch
        client.pause()     # on backgrounding
        client.resume()    # on foregrounding
        client.stop()      # on explicit exit

    The initial state is PAUSED when the store holds an unfinished session
    from a previous process, INACTIVE otherwise.
    """

    __slots__ = (
        "_context",
        "_events",
        "_store",
        "_clock",
        "_lock",
        "_session",
        "_state",
        "_resume_delay_ms",
        "_restart_delay_ms",
        "_metrics",
    )

    def __init__(
        self,
        context: AnalyticsContext,
        event_sink: EventSink,
        store: SessionStore,
        clock: Optional[Clock] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        """
        Args:
            context: Install context carrying client id and configuration
            event_sink: Receives lifecycle and attributed application events
            store: Persists the current session across restarts
            clock: Time source (system clock by default)
            metrics: Metrics registry (process singleton by default)

        Raises:
            ConfigurationError: if context, event_sink or store is None
        """
        if context is None:
            raise ConfigurationError.missing_collaborator("AnalyticsContext")
        if event_sink is None:
            raise ConfigurationError.missing_collaborator("EventSink")
        if store is None:
            raise ConfigurationError.missing_collaborator("SessionStore")

        self._context = context
        self._events = event_sink
        self._store = store
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()

        session_config = context.config.session
        self._resume_delay_ms = session_config.resume_delay_ms
        self._restart_delay_ms = session_config.restart_delay_ms

        if metrics is None:
            metrics = (
                MetricsCollector.get_instance()
                if context.config.observability.metrics_enabled
                else MetricsCollector()
            )
        self._metrics = _SessionMetrics(metrics)

        self._session = self._restore()
        self._state = SessionState.of(self._session)
        self._metrics.active.set(0.0)

        logger.debug(
            f"Session client ready in state {self._state.name}",
            client_id=str(context.client_id),
            resume_delay_ms=self._resume_delay_ms,
            restart_delay_ms=self._restart_delay_ms,
        )

    @classmethod
    def create(
        cls,
        context: AnalyticsContext,
        event_sink: EventSink,
        store: Optional[SessionStore] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> SessionClient:
        """Build a client, creating the configured session store when none is given."""
        if context is None:
            raise ConfigurationError.missing_collaborator("AnalyticsContext")
        return cls(context, event_sink, store or create_store(context), clock, metrics)

    # -------------------------------------------------------------------------
    # PUBLIC OPERATIONS
    # -------------------------------------------------------------------------
    def start(self) -> TransitionOutcome:
        """Start a session. Restarts a paused session; no-op while active."""
        return self._apply(Operation.START)

    def stop(self) -> TransitionOutcome:
        """Stop the current session. No-op while inactive."""
        return self._apply(Operation.STOP)

    def pause(self) -> TransitionOutcome:
        """
        Briefly pause the session.

        Should be called when the application moves to the background.
        """
        return self._apply(Operation.PAUSE)

    def resume(self) -> TransitionOutcome:
        """
        Resume the paused session if it was paused within the resume delay;
        otherwise stop it and start a new one.

        Should be called when the application returns to the foreground.
        """
        return self._apply(Operation.RESUME)

    def record_event(
        self,
        event_type: str,
        attributes: Optional[Mapping[str, str]] = None,
        metrics: Optional[Mapping[str, float]] = None,
    ) -> None:
        """Emit an application event attributed to the current session, if any."""
        with self._lock:
            event = SessionEvent(
                event_type=event_type,
                attributes=dict(attributes or {}),
                metrics=dict(metrics or {}),
                session=self._session.context if self._session is not None else None,
            )
            self._emit(event)

    # -------------------------------------------------------------------------
    # ACCESSORS
    # -------------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def session(self) -> Optional[Session]:
        """The live session record. Callers must treat it as read-only."""
        with self._lock:
            return self._session

    @property
    def session_context(self) -> Optional[SessionContext]:
        with self._lock:
            return self._session.context if self._session is not None else None

    @property
    def context(self) -> AnalyticsContext:
        return self._context

    @property
    def resume_delay_ms(self) -> int:
        return self._resume_delay_ms

    @property
    def restart_delay_ms(self) -> int:
        """Configured restart delay. Read and exposed; no transition consults it."""
        return self._restart_delay_ms

    # -------------------------------------------------------------------------
    # INTERNALS
    # -------------------------------------------------------------------------
    def _new_session(self, now: Timestamp) -> Session:
        return Session.begin(self._context.client_id, now)

    def _apply(self, operation: Operation) -> TransitionOutcome:
        op_name = operation.name.lower()
        with self._lock:
            outcome = transition(
                self._state,
                operation,
                self._session,
                self._clock.now(),
                self._resume_delay_ms,
                self._new_session,
            )

            if outcome.is_noop:
                logger.debug(
                    f"Ignored {op_name} in state {self._state.name}",
                    session_id=self._session.session_id if self._session else None,
                )
                self._metrics.transitions.inc(operation=op_name, outcome="noop")
                return outcome

            self._session = outcome.session
            self._state = outcome.state

            for event in outcome.events:
                self._emit(event)
                if event.event_type == C.SESSION_STOP_EVENT_TYPE:
                    duration_ms = event.metrics[C.SESSION_DURATION_METRIC_KEY]
                    self._metrics.durations.observe(duration_ms / C.SECOND_MS)

            self._persist(outcome)

            self._metrics.transitions.inc(operation=op_name, outcome=outcome.trigger.lower())
            self._metrics.active.set(1.0 if outcome.state is SessionState.ACTIVE else 0.0)
            logger.info(
                f"Session {op_name}: {outcome.from_state.name} -> {outcome.state.name} "
                f"({outcome.trigger})",
                session_id=outcome.session.session_id if outcome.session else None,
            )
            return outcome

    def _emit(self, event: SessionEvent) -> None:
        try:
            self._events.emit(event.event_type, event.attributes, event.metrics, event.session)
        except Exception as e:
            error = EventDeliveryError.emit_failed(event.event_type, cause=e)
            self._metrics.emission_failures.inc(event_type=event.event_type)
            logger.warning(str(error), error_code=error.code.name, cause=repr(e))

    def _persist(self, outcome: TransitionOutcome) -> None:
        match outcome.persist:
            case PersistAction.SAVE:
                action = "save"
            case PersistAction.CLEAR:
                action = "clear"
            case _:
                return

        try:
            if outcome.persist is PersistAction.SAVE:
                result = self._store.save(outcome.session)
            else:
                result = self._store.clear()
        except Exception as e:
            result = Err(SessionStoreError.write_failed(type(self._store).__name__, cause=e))

        self._check_store_result(action, result)

    def _check_store_result(self, action: str, result: Result) -> None:
        if result.is_ok():
            return
        error = result.error
        self._metrics.persistence_failures.inc(action=action)
        logger.warning(
            f"Session store {action} failed: {error}",
            error_code=error.code.name,
        )

    def _restore(self) -> Optional[Session]:
        """
        Recover an unfinished session left by a previous process.

        A record saved while active (the process died in the foreground)
        is treated as paused at its start time. A stopped record is
        discarded.
        """
        try:
            result = self._store.load()
        except Exception as e:
            result = Err(SessionStoreError.read_failed(type(self._store).__name__, cause=e))

        if result.is_err():
            self._check_store_result("load", result)
            return None

        session = result.unwrap()
        if session is None:
            return None

        if session.is_stopped:
            logger.info("Discarding stopped session from store", session_id=session.session_id)
            try:
                cleared = self._store.clear()
            except Exception as e:
                cleared = Err(SessionStoreError.write_failed(type(self._store).__name__, cause=e))
            self._check_store_result("clear", cleared)
            return None

        if session.pause_time is None:
            session.pause(session.start_time)

        logger.info("Restored paused session from store", session_id=session.session_id)
        return session

    def __repr__(self) -> str:
        session = self._session
        if session is None:
            return "[SessionClient]\n- session: <null>"
        suffix = ": paused" if session.is_paused else ""
        return f"[SessionClient]\n- session: {session.session_id}{suffix}"
