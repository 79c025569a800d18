"""
Observability module: Metrics and structured logging.
"""

from mobileanalytics.observability.metrics import MetricsCollector, Counter, Gauge, Histogram
from mobileanalytics.observability.logging import StructuredLogger, LogLevel, setup_logging

__all__ = [
    "MetricsCollector",
    "Counter",
    "Gauge",
    "Histogram",
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
]
