"""
System-Wide Constants for the Mobile Analytics Session Client

All magic numbers, event names and configuration keys centralized here.
Event type and attribute strings are part of the wire contract with the
analytics backend and must not change.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
SECOND_MS: Final[int] = 1000

NS_PER_MS: Final[int] = 1_000_000

# =============================================================================
# SESSION EVENT TYPES
# =============================================================================
SESSION_START_EVENT_TYPE: Final[str] = "_session.start"
SESSION_STOP_EVENT_TYPE: Final[str] = "_session.stop"
SESSION_PAUSE_EVENT_TYPE: Final[str] = "_session.pause"
SESSION_RESUME_EVENT_TYPE: Final[str] = "_session.resume"

# =============================================================================
# SESSION EVENT ATTRIBUTE / METRIC KEYS
# =============================================================================
SESSION_ID_ATTRIBUTE_KEY: Final[str] = "_session.id"
SESSION_START_TIME_ATTRIBUTE_KEY: Final[str] = "_session.startTime"
SESSION_STOP_TIME_ATTRIBUTE_KEY: Final[str] = "_session.stopTime"
SESSION_DURATION_METRIC_KEY: Final[str] = "_session.duration"

# =============================================================================
# SESSION TIMERS
# =============================================================================
DEFAULT_RESUME_DELAY_MS: Final[int] = 5 * SECOND_MS
DEFAULT_RESTART_DELAY_MS: Final[int] = 30 * SECOND_MS

RESUME_DELAY_CONFIG_KEY: Final[str] = "sessionResumeDelay"
RESTART_DELAY_CONFIG_KEY: Final[str] = "sessionRestartDelay"

# =============================================================================
# SESSION IDENTIFIERS
# =============================================================================
SESSION_ID_CLIENT_PREFIX_LEN: Final[int] = 8
SESSION_ID_TIME_FORMAT: Final[str] = "%Y%m%d-%H%M%S"
SESSION_ID_RANDOM_HEX_LEN: Final[int] = 8

# =============================================================================
# SESSION STORE
# =============================================================================
DEFAULT_STORE_FILE_NAME: Final[str] = "_session"
DEFAULT_REDIS_KEY_PREFIX: Final[str] = "mobileanalytics"
LZ4_FRAME_MAGIC: Final[bytes] = b"\x04\x22\x4d\x18"

# =============================================================================
# EVENT CLIENT
# =============================================================================
DEFAULT_EVENT_BUFFER_SIZE: Final[int] = 1000

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_PREFIX: Final[str] = "MOBILEANALYTICS_"
