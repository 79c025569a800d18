"""
Session Module: Application Session Lifecycle

Provides:
- Session / SessionContext: the session record and its attribution value
- SessionState / transition: tagged-state FSM as a pure function
- SessionStore implementations: in-memory, file, Redis
- SessionClient: lock-guarded lifecycle manager

Architecture:
- State lives in memory; the store is a best-effort mirror
- Resume delay is evaluated lazily on resume(), no timer threads
"""

from mobileanalytics.session.model import (
    Session,
    SessionContext,
    generate_session_id,
)
from mobileanalytics.session.state_machine import (
    SessionState,
    Operation,
    PersistAction,
    SessionEvent,
    SessionTransition,
    TransitionOutcome,
    VALID_TRANSITIONS,
    available_operations,
    transition,
)
from mobileanalytics.session.store import (
    SessionStore,
    InMemorySessionStore,
    FileSessionStore,
)
from mobileanalytics.session.redis_store import RedisSessionStore
from mobileanalytics.session.client import SessionClient, create_store

__all__ = [
    # Record
    "Session",
    "SessionContext",
    "generate_session_id",
    # State Machine
    "SessionState",
    "Operation",
    "PersistAction",
    "SessionEvent",
    "SessionTransition",
    "TransitionOutcome",
    "VALID_TRANSITIONS",
    "available_operations",
    "transition",
    # Stores
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "RedisSessionStore",
    # Client
    "SessionClient",
    "create_store",
]
