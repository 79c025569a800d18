"""
Session Store: Persistence of the Current Session Across Process Restarts

Provides:
- SessionStore: structural protocol the session client depends on
- InMemorySessionStore: process-local store (tests, ephemeral hosts)
- FileSessionStore: single JSON record on disk, optionally LZ4-framed

Contract:
    load()  → Ok(Session) | Ok(None) when nothing is stored | Err(SessionStoreError)
    save()  → Ok(None) | Err(SessionStoreError)
    clear() → Ok(None) | Err(SessionStoreError)

Stores never raise for I/O problems; the client logs the Err and carries on.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import abstractmethod
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import lz4.frame

from mobileanalytics.core import constants as C
from mobileanalytics.core.config import StoreConfig
from mobileanalytics.core.errors import SessionStoreError
from mobileanalytics.core.types import Result, Ok, Err
from mobileanalytics.session.model import Session

logger = logging.getLogger(__name__)


# =============================================================================
# PROTOCOL
# =============================================================================
@runtime_checkable
class SessionStore(Protocol):
    """Persistent home of at most one session record."""

    @abstractmethod
    def load(self) -> Result[Optional[Session], SessionStoreError]:
        """Read the stored session, if any."""
        ...

    @abstractmethod
    def save(self, session: Session) -> Result[None, SessionStoreError]:
        """Replace the stored session."""
        ...

    @abstractmethod
    def clear(self) -> Result[None, SessionStoreError]:
        """Remove the stored session. Clearing an empty store succeeds."""
        ...


# =============================================================================
# RECORD CODEC
# =============================================================================
def encode_session(session: Session, compression: str = "none") -> bytes:
    """Serialize a session record, LZ4-framing it when requested."""
    data = json.dumps(session.to_dict(), separators=(",", ":")).encode("utf-8")
    if compression == "lz4":
        return lz4.frame.compress(data)
    return data


def decode_session(data: bytes, location: str) -> Result[Session, SessionStoreError]:
    """
    Parse bytes written by encode_session.

    LZ4 frames are detected by their magic number, so a store can switch
    compression modes without losing a record written in the other mode.
    """
    if data.startswith(C.LZ4_FRAME_MAGIC):
        try:
            data = lz4.frame.decompress(data)
        except RuntimeError as e:
            return Err(SessionStoreError.corrupted(location, "bad lz4 frame", cause=e))

    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        return Err(SessionStoreError.corrupted(location, "not valid JSON", cause=e))

    parsed = Session.from_dict(payload)
    if parsed.is_err():
        return Err(SessionStoreError.corrupted(location, parsed.error))
    return Ok(parsed.unwrap())


# =============================================================================
# IN-MEMORY STORE
# =============================================================================
class InMemorySessionStore:
    """
    Process-local session store.

    Keeps a serialized copy so later mutation of the live record by the
    client is not visible until the next save().
    """

    __slots__ = ("_record", "_lock", "_saves", "_clears")

    def __init__(self, session: Optional[Session] = None) -> None:
        self._record: Optional[dict] = session.to_dict() if session else None
        self._lock = threading.Lock()
        self._saves = 0
        self._clears = 0

    def load(self) -> Result[Optional[Session], SessionStoreError]:
        with self._lock:
            if self._record is None:
                return Ok(None)
            parsed = Session.from_dict(self._record)
        if parsed.is_err():
            return Err(SessionStoreError.corrupted("memory", parsed.error))
        return Ok(parsed.unwrap())

    def save(self, session: Session) -> Result[None, SessionStoreError]:
        with self._lock:
            self._record = session.to_dict()
            self._saves += 1
        return Ok(None)

    def clear(self) -> Result[None, SessionStoreError]:
        with self._lock:
            self._record = None
            self._clears += 1
        return Ok(None)

    @property
    def write_count(self) -> int:
        """Number of save() and clear() calls served."""
        with self._lock:
            return self._saves + self._clears

    @property
    def record(self) -> Optional[dict]:
        """Copy of the stored record, for inspection."""
        with self._lock:
            return dict(self._record) if self._record is not None else None


# =============================================================================
# FILE STORE
# =============================================================================
class FileSessionStore:
    """
    Single-record session store on the local filesystem.

    Writes go to a sibling temp file and are moved into place with
    os.replace, so a crash mid-write leaves the previous record intact.
    """

    __slots__ = ("_path", "_compression", "_lock")

    def __init__(self, path: Path | str, compression: str = "none") -> None:
        if compression not in ("none", "lz4"):
            raise ValueError(f"Unsupported compression '{compression}'")
        self._path = Path(path)
        self._compression = compression
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: StoreConfig) -> FileSessionStore:
        return cls(config.file_path, compression=config.compression)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Result[Optional[Session], SessionStoreError]:
        location = str(self._path)
        with self._lock:
            try:
                data = self._path.read_bytes()
            except FileNotFoundError:
                return Ok(None)
            except OSError as e:
                return Err(SessionStoreError.read_failed(location, cause=e))

        if not data:
            return Ok(None)
        return decode_session(data, location)

    def save(self, session: Session) -> Result[None, SessionStoreError]:
        data = encode_session(session, self._compression)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_bytes(data)
                os.replace(tmp_path, self._path)
            except OSError as e:
                return Err(SessionStoreError.write_failed(str(self._path), cause=e))
        logger.debug(f"Stored session {session.session_id} at {self._path}")
        return Ok(None)

    def clear(self) -> Result[None, SessionStoreError]:
        with self._lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                return Err(SessionStoreError.write_failed(str(self._path), cause=e))
        return Ok(None)
