"""
Core Type Definitions for the Mobile Analytics Session Client

Implements Result/Either monads for exception-free control flow on the
fallible paths (session store I/O, record parsing, configuration).

Design Principles:
- Never use null for absence of a result (use Optional or Result)
- Collaborator I/O returns Result; programming errors raise
- Timestamps are integer nanoseconds since the Unix epoch
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    ClassVar,
    Generic,
    Literal,
    TypeVar,
    Union,
)
from uuid import UUID, uuid4

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable, hashable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """
        Extract value. Safe to call after is_ok() check.

        Returns:
            T: The wrapped success value
        """
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the error value for the caller to log or inspect.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# IDENTITY TYPES
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class ClientId:
    """
    Unique installation identifier.

    Generated once per application install and used as the prefix of
    every session id minted on that install.
    """

    value: UUID

    @classmethod
    def generate(cls) -> ClientId:
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, s: str) -> Result[ClientId, str]:
        try:
            return Ok(cls(value=UUID(s)))
        except ValueError as e:
            return Err(f"Invalid ClientId format: {e}")

    def __str__(self) -> str:
        return str(self.value)

    def __hash__(self) -> int:
        return hash(self.value)


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Wall-clock timestamp.

    Stores nanoseconds since Unix epoch. Session arithmetic and the
    persisted record work in milliseconds, so the ``millis`` view and
    ``from_millis`` constructor are the ones used on the hot path.
    """

    nanos: int

    NANOS_PER_SECOND: ClassVar[int] = 1_000_000_000
    NANOS_PER_MILLI: ClassVar[int] = 1_000_000

    @classmethod
    def now(cls) -> Timestamp:
        """Capture current wall-clock time."""
        return cls(nanos=time.time_ns())

    @classmethod
    def from_seconds(cls, seconds: float) -> Timestamp:
        return cls(nanos=int(seconds * cls.NANOS_PER_SECOND))

    @classmethod
    def from_millis(cls, millis: int) -> Timestamp:
        return cls(nanos=millis * cls.NANOS_PER_MILLI)

    @property
    def seconds(self) -> float:
        return self.nanos / self.NANOS_PER_SECOND

    @property
    def millis(self) -> int:
        """Milliseconds since epoch (truncating)."""
        return self.nanos // self.NANOS_PER_MILLI

    def millis_since(self, earlier: Timestamp) -> int:
        """Signed milliseconds from ``earlier`` to this timestamp."""
        return self.millis - earlier.millis

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.nanos / self.NANOS_PER_SECOND, tz=timezone.utc)

    def to_iso8601(self) -> str:
        """
        ISO-8601 UTC with millisecond precision, e.g. 2024-01-02T03:04:05.678Z.

        Built from the integer millis so no float rounding leaks in.
        """
        millis = self.millis
        dt = datetime.fromtimestamp(millis // 1000, tz=timezone.utc)
        return f"{dt.strftime('%Y-%m-%dT%H:%M:%S')}.{millis % 1000:03d}Z"

    def __sub__(self, other: Timestamp) -> int:
        """Subtract timestamps, returning difference in nanos."""
        return self.nanos - other.nanos

    def __add__(self, nanos: int) -> Timestamp:
        return Timestamp(nanos=self.nanos + nanos)

    def __repr__(self) -> str:
        return f"Timestamp({self.to_iso8601()})"
