"""
Redis Session Store
===================

Keeps the current session record in Redis/Valkey so a host whose local
disk is ephemeral (containers, kiosk images) still recovers a paused
session after restart.

Data Model:
    Key:   {prefix}:session:{client_id}
    Value: the record bytes produced by encode_session (JSON, optionally
           LZ4-framed)

Thread Safety:
    redis-py clients hold a thread-safe connection pool, so a single
    store instance may be shared by the session client and anything else.

Latency:
    Calls are synchronous and the session client makes them while holding
    its lock, so a slow or unreachable server stalls each transition for
    up to DEFAULT_SOCKET_TIMEOUT_S. The timeout surfaces as
    STORE_CONNECTION_FAILED or STORE_WRITE_FAILED; the transition still
    completes in memory. Hosts that cannot afford the stall should use the
    file store.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from mobileanalytics.core.config import StoreConfig
from mobileanalytics.core.errors import SessionStoreError
from mobileanalytics.core.types import ClientId, Result, Ok, Err
from mobileanalytics.session.model import Session
from mobileanalytics.session.store import decode_session, encode_session

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_TIMEOUT_S: float = 2.0


class RedisSessionStore:
    """
    Session store backed by a single Redis string key.

    Example:
        >>> store = RedisSessionStore.from_config(StoreConfig(backend="redis"), client_id)
        >>> store.save(session)
        >>> store.load().unwrap()
    """

    __slots__ = ("_client", "_key", "_compression", "_url")

    def __init__(
        self,
        client: Any,
        key: str,
        compression: str = "none",
        url: str = "redis://",
    ) -> None:
        """
        Args:
            client: redis.Redis (or API-compatible) client
            key: Key holding the session record
            compression: "none" or "lz4"
            url: Connection URL, used only in error messages
        """
        self._client = client
        self._key = key
        self._compression = compression
        self._url = url

    @classmethod
    def from_config(cls, config: StoreConfig, client_id: ClientId) -> RedisSessionStore:
        client = redis.Redis.from_url(
            config.redis_url,
            socket_timeout=DEFAULT_SOCKET_TIMEOUT_S,
            socket_connect_timeout=DEFAULT_SOCKET_TIMEOUT_S,
        )
        return cls(
            client,
            key=session_key(config.redis_key_prefix, client_id),
            compression=config.compression,
            url=config.redis_url,
        )

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> Result[Optional[Session], SessionStoreError]:
        try:
            data = self._client.get(self._key)
        except RedisConnectionError as e:
            return Err(SessionStoreError.connection_failed(self._url, cause=e))
        except RedisError as e:
            return Err(SessionStoreError.read_failed(self._key, cause=e))

        if data is None:
            return Ok(None)
        if isinstance(data, str):
            data = data.encode("utf-8")
        return decode_session(data, self._key)

    def save(self, session: Session) -> Result[None, SessionStoreError]:
        payload = encode_session(session, self._compression)
        try:
            self._client.set(self._key, payload)
        except RedisConnectionError as e:
            return Err(SessionStoreError.connection_failed(self._url, cause=e))
        except RedisError as e:
            return Err(SessionStoreError.write_failed(self._key, cause=e))
        logger.debug(f"Stored session {session.session_id} under {self._key}")
        return Ok(None)

    def clear(self) -> Result[None, SessionStoreError]:
        try:
            self._client.delete(self._key)
        except RedisConnectionError as e:
            return Err(SessionStoreError.connection_failed(self._url, cause=e))
        except RedisError as e:
            return Err(SessionStoreError.write_failed(self._key, cause=e))
        return Ok(None)

    def close(self) -> None:
        self._client.close()


def session_key(prefix: str, client_id: ClientId) -> str:
    return f"{prefix}:session:{client_id}"
