"""
Session Record: One Bounded Period of Application Usage

Lifecycle:
    not-yet-started → active      : Session.begin()
    active          → paused      : pause(now)
    paused          → active      : resume()
    active/paused   → stopped     : stop(now)

A stopped session is terminal; every mutator raises afterwards.

Serialized form (JSON object, times in epoch milliseconds):
    {"session_id": "...", "start_time": 1700000000000,
     "pause_time": null, "stop_time": null}
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from mobileanalytics.core import constants as C
from mobileanalytics.core.errors import SessionError
from mobileanalytics.core.types import ClientId, Result, Ok, Err, Timestamp


def generate_session_id(client_id: ClientId, start_time: Timestamp) -> str:
    """
    Mint a session id: <client prefix>-<yyyyMMdd-HHmmssSSS UTC>-<random hex>.

    The random suffix keeps ids distinct for starts within the same
    millisecond on the same install.
    """
    prefix = str(client_id).replace("-", "")[: C.SESSION_ID_CLIENT_PREFIX_LEN]
    millis = start_time.millis
    dt = datetime.fromtimestamp(millis // 1000, tz=timezone.utc)
    stamp = f"{dt.strftime(C.SESSION_ID_TIME_FORMAT)}{millis % 1000:03d}"
    suffix = secrets.token_hex(C.SESSION_ID_RANDOM_HEX_LEN // 2)
    return f"{prefix}-{stamp}-{suffix}"


@dataclass(frozen=True, slots=True)
class SessionContext:
    """
    Attribution for emitted events.

    Passed explicitly with every emission while a session exists.
    """

    session_id: str
    start_time: Timestamp


@dataclass(slots=True)
class Session:
    """
    Mutable session record owned by the session client.

    Only the client mutates it, under the client lock.
    """

    session_id: str
    start_time: Timestamp
    pause_time: Optional[Timestamp] = None
    stop_time: Optional[Timestamp] = None

    @classmethod
    def begin(cls, client_id: ClientId, now: Timestamp) -> Session:
        """Create a new active session starting at ``now``."""
        return cls(session_id=generate_session_id(client_id, now), start_time=now)

    # -------------------------------------------------------------------------
    # Derived status
    # -------------------------------------------------------------------------
    @property
    def is_paused(self) -> bool:
        return self.pause_time is not None and self.stop_time is None

    @property
    def is_stopped(self) -> bool:
        return self.stop_time is not None

    @property
    def is_active(self) -> bool:
        return self.pause_time is None and self.stop_time is None

    @property
    def context(self) -> SessionContext:
        return SessionContext(session_id=self.session_id, start_time=self.start_time)

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------
    def pause(self, now: Timestamp) -> None:
        """Record a pause. Pausing an already paused session keeps the first pause time."""
        self._ensure_not_stopped("pause")
        if self.pause_time is None:
            self.pause_time = now

    def resume(self) -> None:
        self._ensure_not_stopped("resume")
        self.pause_time = None

    def stop(self, now: Timestamp) -> int:
        """
        Mark the session terminal and return its duration in milliseconds.

        Duration is measured up to the pause point when stopping a paused
        session, otherwise up to ``now``.
        """
        self._ensure_not_stopped("stop")
        duration = self.duration_ms(now)
        self.stop_time = now
        return duration

    def duration_ms(self, now: Timestamp) -> int:
        """Elapsed session time in ms, clamped at zero if the clock went backwards."""
        if self.stop_time is not None:
            end = self.pause_time or self.stop_time
        else:
            end = self.pause_time or now
        return max(0, end.millis_since(self.start_time))

    def _ensure_not_stopped(self, operation: str) -> None:
        if self.stop_time is not None:
            raise SessionError.already_stopped(self.session_id, operation)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.millis,
            "pause_time": self.pause_time.millis if self.pause_time else None,
            "stop_time": self.stop_time.millis if self.stop_time else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Result[Session, str]:
        """
        Parse a serialized record.

        Returns:
            Ok[Session]: Valid record
            Err[str]: Missing or mistyped field
        """
        if not isinstance(data, Mapping):
            return Err(f"expected an object, got {type(data).__name__}")

        session_id = data.get("session_id")
        if not isinstance(session_id, str) or not session_id:
            return Err("missing or empty 'session_id'")

        times: dict[str, Optional[Timestamp]] = {}
        for key in ("start_time", "pause_time", "stop_time"):
            raw = data.get(key)
            if raw is None:
                times[key] = None
            elif isinstance(raw, int) and not isinstance(raw, bool):
                times[key] = Timestamp.from_millis(raw)
            else:
                return Err(f"field '{key}' must be epoch milliseconds, got {raw!r}")

        start_time = times["start_time"]
        if start_time is None:
            return Err("missing 'start_time'")

        return Ok(cls(
            session_id=session_id,
            start_time=start_time,
            pause_time=times["pause_time"],
            stop_time=times["stop_time"],
        ))

    def __repr__(self) -> str:
        status = "stopped" if self.is_stopped else "paused" if self.is_paused else "active"
        return f"Session({self.session_id!r}, {status})"
