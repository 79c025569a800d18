"""
Session State Machine: Lifecycle FSM with Timer-Gated Resume

States:
    INACTIVE → No session exists
    ACTIVE   → Session running in the foreground
    PAUSED   → Session backgrounded, may be reattached by resume()

Transitions:
    INACTIVE → ACTIVE   : start
    ACTIVE   → PAUSED   : pause
    ACTIVE   → INACTIVE : stop
    PAUSED   → ACTIVE   : resume within the resume delay (same session)
    PAUSED   → ACTIVE   : resume after the resume delay (stop + new session)
    PAUSED   → ACTIVE   : start (stop + new session)
    PAUSED   → INACTIVE : stop

Every other (state, operation) pair is a silent no-op.

Design:
    - transition() is a pure function of (state, operation, session, now);
      the only side effect is mutating the session record it was handed
    - The outcome lists the events to emit and the persistence action,
      so the client applies them in one place under its lock
    - There is no timer thread; the resume delay is checked lazily
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Optional

from mobileanalytics.core import constants as C
from mobileanalytics.core.types import Timestamp
from mobileanalytics.session.model import Session, SessionContext


# =============================================================================
# SESSION STATE ENUMERATION
# =============================================================================
class SessionState(Enum):
    """
    Client-level session states.

    Mutually exclusive; always consistent with the current session record
    outside of an in-flight transition.
    """
    INACTIVE = auto()
    ACTIVE = auto()
    PAUSED = auto()

    @classmethod
    def of(cls, session: Optional[Session]) -> SessionState:
        """State implied by a session record."""
        if session is None or session.is_stopped:
            return cls.INACTIVE
        return cls.PAUSED if session.is_paused else cls.ACTIVE


class Operation(Enum):
    """Public client operations."""
    START = auto()
    STOP = auto()
    PAUSE = auto()
    RESUME = auto()


class PersistAction(Enum):
    """What the client must do with the session store after a transition."""
    NONE = auto()
    SAVE = auto()
    CLEAR = auto()


# =============================================================================
# TRANSITION DEFINITIONS
# =============================================================================
@dataclass(frozen=True, slots=True)
class SessionTransition:
    """A valid (non no-op) state transition."""
    from_state: SessionState
    to_state: SessionState
    operation: Operation
    trigger: str


VALID_TRANSITIONS: frozenset[SessionTransition] = frozenset({
    SessionTransition(SessionState.INACTIVE, SessionState.ACTIVE, Operation.START, "START"),
    SessionTransition(SessionState.ACTIVE, SessionState.PAUSED, Operation.PAUSE, "PAUSE"),
    SessionTransition(SessionState.ACTIVE, SessionState.INACTIVE, Operation.STOP, "STOP"),
    SessionTransition(SessionState.PAUSED, SessionState.ACTIVE, Operation.RESUME, "RESUME"),
    SessionTransition(SessionState.PAUSED, SessionState.ACTIVE, Operation.RESUME, "RESUME_EXPIRED"),
    SessionTransition(SessionState.PAUSED, SessionState.ACTIVE, Operation.START, "RESTART"),
    SessionTransition(SessionState.PAUSED, SessionState.INACTIVE, Operation.STOP, "STOP"),
})

NOOP_TRIGGER = "NOOP"


def available_operations(state: SessionState) -> list[Operation]:
    """Operations that are not no-ops from ``state``, in declaration order."""
    ops = {t.operation for t in VALID_TRANSITIONS if t.from_state == state}
    return [op for op in Operation if op in ops]


# =============================================================================
# EVENTS AND OUTCOMES
# =============================================================================
@dataclass(frozen=True, slots=True)
class SessionEvent:
    """A lifecycle event ready to hand to the event sink."""
    event_type: str
    attributes: dict[str, str] = field(default_factory=dict)
    metrics: dict[str, float] = field(default_factory=dict)
    session: Optional[SessionContext] = None


@dataclass(frozen=True, slots=True)
class TransitionOutcome:
    """Result of applying one operation to one state."""
    operation: Operation
    from_state: SessionState
    state: SessionState
    trigger: str
    session: Optional[Session]
    events: tuple[SessionEvent, ...] = ()
    persist: PersistAction = PersistAction.NONE

    @property
    def is_noop(self) -> bool:
        return self.trigger == NOOP_TRIGGER


def start_event(session: Session) -> SessionEvent:
    return SessionEvent(
        event_type=C.SESSION_START_EVENT_TYPE,
        attributes={
            C.SESSION_ID_ATTRIBUTE_KEY: session.session_id,
            C.SESSION_START_TIME_ATTRIBUTE_KEY: session.start_time.to_iso8601(),
        },
        session=session.context,
    )


def stop_event(session: Session, duration_ms: int) -> SessionEvent:
    """Event for a session already finalized by Session.stop()."""
    return SessionEvent(
        event_type=C.SESSION_STOP_EVENT_TYPE,
        attributes={
            C.SESSION_ID_ATTRIBUTE_KEY: session.session_id,
            C.SESSION_STOP_TIME_ATTRIBUTE_KEY: session.stop_time.to_iso8601(),
        },
        metrics={C.SESSION_DURATION_METRIC_KEY: float(duration_ms)},
        session=session.context,
    )


def pause_event(session: Session) -> SessionEvent:
    return SessionEvent(
        event_type=C.SESSION_PAUSE_EVENT_TYPE,
        attributes={C.SESSION_ID_ATTRIBUTE_KEY: session.session_id},
        session=session.context,
    )


def resume_event(session: Session) -> SessionEvent:
    return SessionEvent(
        event_type=C.SESSION_RESUME_EVENT_TYPE,
        attributes={C.SESSION_ID_ATTRIBUTE_KEY: session.session_id},
        session=session.context,
    )


# =============================================================================
# TRANSITION FUNCTION
# =============================================================================
def transition(
    state: SessionState,
    operation: Operation,
    session: Optional[Session],
    now: Timestamp,
    resume_delay_ms: int,
    new_session: Callable[[Timestamp], Session],
) -> TransitionOutcome:
    """
    Apply ``operation`` to ``state``.

    Args:
        state: Current client state
        operation: Requested operation
        session: Current session record (None iff state is INACTIVE)
        now: Time of the request
        resume_delay_ms: Longest pause that resume() still reattaches to
        new_session: Factory minting a fresh session starting at a time

    Returns:
        TransitionOutcome with the events to emit in order
    """
    if state is not SessionState.INACTIVE and session is None:
        raise ValueError(f"State {state.name} requires a session record")

    match (state, operation):
        case (SessionState.INACTIVE, Operation.START):
            fresh = new_session(now)
            return TransitionOutcome(
                operation, state, SessionState.ACTIVE, "START", fresh,
                events=(start_event(fresh),),
                persist=PersistAction.SAVE,
            )

        case (SessionState.ACTIVE, Operation.PAUSE):
            session.pause(now)
            return TransitionOutcome(
                operation, state, SessionState.PAUSED, "PAUSE", session,
                events=(pause_event(session),),
                persist=PersistAction.SAVE,
            )

        case (SessionState.ACTIVE | SessionState.PAUSED, Operation.STOP):
            return TransitionOutcome(
                operation, state, SessionState.INACTIVE, "STOP", None,
                events=(_finalize(session, now),),
                persist=PersistAction.CLEAR,
            )

        case (SessionState.PAUSED, Operation.RESUME):
            elapsed = now.millis_since(session.pause_time)
            if elapsed <= resume_delay_ms:
                session.resume()
                return TransitionOutcome(
                    operation, state, SessionState.ACTIVE, "RESUME", session,
                    events=(resume_event(session),),
                    persist=PersistAction.SAVE,
                )
            return _restart(operation, state, session, now, new_session, "RESUME_EXPIRED")

        case (SessionState.PAUSED, Operation.START):
            return _restart(operation, state, session, now, new_session, "RESTART")

    return TransitionOutcome(operation, state, state, NOOP_TRIGGER, session)


def _finalize(session: Session, now: Timestamp) -> SessionEvent:
    duration = session.stop(now)
    return stop_event(session, duration)


def _restart(
    operation: Operation,
    state: SessionState,
    session: Session,
    now: Timestamp,
    new_session: Callable[[Timestamp], Session],
    trigger: str,
) -> TransitionOutcome:
    """Stop the paused session and start a fresh one at the same instant."""
    stopped = _finalize(session, now)
    fresh = new_session(now)
    return TransitionOutcome(
        operation, state, SessionState.ACTIVE, trigger, fresh,
        events=(stopped, start_event(fresh)),
        persist=PersistAction.SAVE,
    )
