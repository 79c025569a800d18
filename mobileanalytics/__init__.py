"""
Mobile Analytics Session Client

Tracks an application's foreground/background usage session across
pause/resume/restart boundaries and reports it as session events:
- Explicit state machine (INACTIVE / ACTIVE / PAUSED)
- Timer-gated resume: short pauses reattach, long pauses start anew
- Persistence-backed recovery of a paused session after restart
- One lock per client guards every transition

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from mobileanalytics.core.types import Result, Ok, Err, ClientId, Timestamp
from mobileanalytics.core.errors import (
    AnalyticsError,
    ConfigurationError,
    EventDeliveryError,
    SessionError,
    SessionStoreError,
)
from mobileanalytics.core.config import AnalyticsConfig, AnalyticsContext, SessionConfig
from mobileanalytics.core.clock import Clock, SystemClock, ManualClock

from mobileanalytics.event import EventSink, AnalyticsEvent, InMemoryEventClient

from mobileanalytics.session import (
    Session,
    SessionContext,
    SessionState,
    SessionStore,
    InMemorySessionStore,
    FileSessionStore,
    RedisSessionStore,
    SessionClient,
)

__all__ = [
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Identity / time
    "ClientId",
    "Timestamp",
    "Clock",
    "SystemClock",
    "ManualClock",
    # Errors
    "AnalyticsError",
    "ConfigurationError",
    "EventDeliveryError",
    "SessionError",
    "SessionStoreError",
    # Config
    "AnalyticsConfig",
    "AnalyticsContext",
    "SessionConfig",
    # Events
    "EventSink",
    "AnalyticsEvent",
    "InMemoryEventClient",
    # Session
    "Session",
    "SessionContext",
    "SessionState",
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "RedisSessionStore",
    "SessionClient",
]
