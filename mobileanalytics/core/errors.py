"""
Error Hierarchy for the Mobile Analytics Session Client

Taxonomy:
- Construction errors (missing collaborator) are raised immediately
- Invalid configuration values never raise; defaults are used instead
- Collaborator I/O failures are returned as Err values and logged by
  the session client, which completes the transition in memory anyway
- Mutating a terminal session record is a programming error and raises

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Timestamp for correlation with the emitted events
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from mobileanalytics.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Session store errors
    - 2xxx: Event delivery errors
    - 3xxx: Session record errors
    - 9xxx: Configuration errors
    """

    # Session store errors (1xxx)
    STORE_READ_FAILED = 1001
    STORE_WRITE_FAILED = 1002
    STORE_CORRUPTED = 1003
    STORE_CONNECTION_FAILED = 1004

    # Event delivery errors (2xxx)
    EVENT_EMIT_FAILED = 2001

    # Session record errors (3xxx)
    SESSION_ALREADY_STOPPED = 3001

    # Configuration errors (9xxx)
    CONFIG_MISSING_COLLABORATOR = 9001
    CONFIG_INVALID_VALUE = 9002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class AnalyticsError(Exception):
    """
    Base class for all mobile analytics errors.

    Usable both as a raised exception and as the payload of an Err.
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        data = {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_millis": self.timestamp.millis,
            "context": self.context,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# SESSION STORE ERRORS
# =============================================================================
@dataclass
class SessionStoreError(AnalyticsError):
    """Failures reading or writing the persisted session record."""

    @classmethod
    def read_failed(
        cls,
        location: str,
        cause: Optional[BaseException] = None,
    ) -> SessionStoreError:
        return cls(
            code=ErrorCode.STORE_READ_FAILED,
            message=f"Failed to read session record from '{location}'",
            cause=cause,
            context={"location": location},
        )

    @classmethod
    def write_failed(
        cls,
        location: str,
        cause: Optional[BaseException] = None,
    ) -> SessionStoreError:
        return cls(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"Failed to write session record to '{location}'",
            cause=cause,
            context={"location": location},
        )

    @classmethod
    def corrupted(
        cls,
        location: str,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> SessionStoreError:
        """Record exists but cannot be decoded into a Session."""
        return cls(
            code=ErrorCode.STORE_CORRUPTED,
            message=f"Corrupted session record at '{location}': {reason}",
            cause=cause,
            context={"location": location, "reason": reason},
        )

    @classmethod
    def connection_failed(
        cls,
        url: str,
        cause: Optional[BaseException] = None,
    ) -> SessionStoreError:
        return cls(
            code=ErrorCode.STORE_CONNECTION_FAILED,
            message=f"Failed to reach session store at {url}",
            cause=cause,
            context={"url": url},
        )


# =============================================================================
# EVENT DELIVERY ERRORS
# =============================================================================
@dataclass
class EventDeliveryError(AnalyticsError):
    """Event sink rejected or failed to accept an event."""

    @classmethod
    def emit_failed(
        cls,
        event_type: str,
        cause: Optional[BaseException] = None,
    ) -> EventDeliveryError:
        return cls(
            code=ErrorCode.EVENT_EMIT_FAILED,
            message=f"Failed to emit event '{event_type}'",
            cause=cause,
            context={"event_type": event_type},
        )


# =============================================================================
# SESSION RECORD ERRORS
# =============================================================================
@dataclass
class SessionError(AnalyticsError):
    """Misuse of a Session record."""

    @classmethod
    def already_stopped(cls, session_id: str, operation: str) -> SessionError:
        return cls(
            code=ErrorCode.SESSION_ALREADY_STOPPED,
            message=f"Cannot {operation} session {session_id}: session is stopped",
            context={"session_id": session_id, "operation": operation},
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigurationError(AnalyticsError):
    """Fatal construction-time errors."""

    @classmethod
    def missing_collaborator(cls, name: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_MISSING_COLLABORATOR,
            message=f"A valid {name} must be provided",
            context={"collaborator": name},
        )

    @classmethod
    def invalid_value(cls, key: str, value: Any, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value {value!r} for '{key}': {reason}",
            context={"key": key, "value": repr(value)},
        )
