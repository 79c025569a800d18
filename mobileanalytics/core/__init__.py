"""
Core module: Type definitions, error hierarchy, configuration and clock.

- Result/Either monads for exception-free collaborator I/O
- Error hierarchy with per-failure constructors
- Configuration with documented defaults
- Injectable wall-clock time source
"""

from mobileanalytics.core.types import (
    Result,
    Ok,
    Err,
    ClientId,
    Timestamp,
)
from mobileanalytics.core.errors import (
    ErrorCode,
    AnalyticsError,
    SessionStoreError,
    EventDeliveryError,
    SessionError,
    ConfigurationError,
)
from mobileanalytics.core.config import (
    AnalyticsConfig,
    AnalyticsContext,
    SessionConfig,
    StoreConfig,
    ObservabilityConfig,
)
from mobileanalytics.core.clock import Clock, SystemClock, ManualClock

__all__ = [
    "Result",
    "Ok",
    "Err",
    "ClientId",
    "Timestamp",
    "ErrorCode",
    "AnalyticsError",
    "SessionStoreError",
    "EventDeliveryError",
    "SessionError",
    "ConfigurationError",
    "AnalyticsConfig",
    "AnalyticsContext",
    "SessionConfig",
    "StoreConfig",
    "ObservabilityConfig",
    "Clock",
    "SystemClock",
    "ManualClock",
]
