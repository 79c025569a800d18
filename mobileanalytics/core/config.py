"""
Configuration Management for the Mobile Analytics Session Client

Provides validated configuration with documented defaults.
Supports environment variable overrides and plain mappings (the remote
configuration document the host application hands over).

Design:
- Immutable after construction
- Invalid session timer values fall back to defaults with a warning
- Type-safe with dataclasses
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from mobileanalytics.core import constants as C
from mobileanalytics.core.errors import ConfigurationError
from mobileanalytics.core.types import ClientId, Result, Ok, Err

logger = logging.getLogger(__name__)

STORE_BACKENDS: frozenset[str] = frozenset({"memory", "file", "redis"})
COMPRESSION_MODES: frozenset[str] = frozenset({"none", "lz4"})


def _opt_millis(source: Mapping[str, Any], key: str, default: int) -> int:
    """
    Read a non-negative millisecond value, falling back to ``default``.

    Missing keys are silent; booleans, unparseable, non-finite or negative
    values are logged and replaced.
    """
    raw = source.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        error = ConfigurationError.invalid_value(key, raw, "not an integer")
        logger.warning(f"{error.message}; using default {default}ms")
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        error = ConfigurationError.invalid_value(key, raw, "not an integer")
        logger.warning(f"{error.message}; using default {default}ms")
        return default
    if isinstance(raw, float) and raw != value:
        logger.warning(f"Truncating fractional value {raw!r} for '{key}' to {value}ms")
    if value < 0:
        error = ConfigurationError.invalid_value(key, raw, "must be >= 0")
        logger.warning(f"{error.message}; using default {default}ms")
        return default
    return value


@dataclass(frozen=True)
class SessionConfig:
    """Session timer policy."""

    resume_delay_ms: int = C.DEFAULT_RESUME_DELAY_MS
    restart_delay_ms: int = C.DEFAULT_RESTART_DELAY_MS

    @classmethod
    def from_mapping(cls, source: Mapping[str, Any]) -> SessionConfig:
        """Build from a mapping keyed by sessionResumeDelay / sessionRestartDelay."""
        return cls(
            resume_delay_ms=_opt_millis(
                source, C.RESUME_DELAY_CONFIG_KEY, C.DEFAULT_RESUME_DELAY_MS
            ),
            restart_delay_ms=_opt_millis(
                source, C.RESTART_DELAY_CONFIG_KEY, C.DEFAULT_RESTART_DELAY_MS
            ),
        )


@dataclass(frozen=True)
class StoreConfig:
    """Session store configuration."""

    backend: str = "file"  # "memory", "file" or "redis"
    data_dir: Path = field(default_factory=lambda: Path("./data/analytics"))
    file_name: str = C.DEFAULT_STORE_FILE_NAME
    compression: str = "none"  # "none" or "lz4"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = C.DEFAULT_REDIS_KEY_PREFIX

    @property
    def file_path(self) -> Path:
        """Session record file path."""
        return self.data_dir / self.file_name


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging and metrics configuration."""

    log_level: str = "INFO"
    log_json: bool = False
    metrics_enabled: bool = True


@dataclass(frozen=True)
class AnalyticsConfig:
    """Root configuration for the session client."""

    session: SessionConfig = field(default_factory=SessionConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_mapping(cls, source: Mapping[str, Any]) -> AnalyticsConfig:
        """
        Build from a flat configuration document.

        Only the session timer keys are recognised; everything else keeps
        its default.
        """
        return cls(session=SessionConfig.from_mapping(source))

    @classmethod
    def from_env(cls) -> Result[AnalyticsConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with MOBILEANALYTICS_.
        Example: MOBILEANALYTICS_SESSION_RESUME_DELAY, MOBILEANALYTICS_STORE_BACKEND
        """
        p = C.ENV_PREFIX
        session = SessionConfig.from_mapping({
            C.RESUME_DELAY_CONFIG_KEY: os.getenv(f"{p}SESSION_RESUME_DELAY"),
            C.RESTART_DELAY_CONFIG_KEY: os.getenv(f"{p}SESSION_RESTART_DELAY"),
        })

        store = StoreConfig(
            backend=os.getenv(f"{p}STORE_BACKEND", "file"),
            data_dir=Path(os.getenv(f"{p}STORE_DATA_DIR", "./data/analytics")),
            compression=os.getenv(f"{p}STORE_COMPRESSION", "none"),
            redis_url=os.getenv(f"{p}REDIS_URL", "redis://localhost:6379/0"),
        )

        observability = ObservabilityConfig(
            log_level=os.getenv(f"{p}LOG_LEVEL", "INFO").upper(),
            log_json=os.getenv(f"{p}LOG_JSON", "false").lower() in ("1", "true", "yes"),
        )

        config = cls(session=session, store=store, observability=observability)
        validation = config.validate()
        if validation.is_err():
            return Err(f"Configuration error: {validation.error}")
        return Ok(config)

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.store.backend not in STORE_BACKENDS:
            return Err(f"Unknown store backend '{self.store.backend}'")
        if self.store.compression not in COMPRESSION_MODES:
            return Err(f"Unknown store compression '{self.store.compression}'")
        if self.observability.log_level not in logging.getLevelNamesMapping():
            return Err(f"Unknown log level '{self.observability.log_level}'")
        return Ok(None)


@dataclass(frozen=True)
class AnalyticsContext:
    """
    Per-install analytics context handed to the session client.

    ``client_id`` is the unique install identifier; one is generated when
    the host application has none yet.
    """

    app_id: str
    client_id: ClientId = field(default_factory=ClientId.generate)
    config: AnalyticsConfig = field(default_factory=AnalyticsConfig)

    @classmethod
    def create(
        cls,
        app_id: str,
        client_id: Optional[str] = None,
        config: Optional[AnalyticsConfig] = None,
    ) -> AnalyticsContext:
        """Build a context, generating a client id if ``client_id`` is missing or invalid."""
        parsed = ClientId.generate()
        if client_id is not None:
            result = ClientId.from_string(client_id)
            if result.is_ok():
                parsed = result.unwrap()
            else:
                logger.warning(f"{result.error}; generated a new client id")
        return cls(app_id=app_id, client_id=parsed, config=config or AnalyticsConfig())
