#!/usr/bin/env python3
"""
Mobile Analytics Session Client

Entry point running a scripted session lifecycle against a manual clock
and printing every event the client emits.

Usage:
    python -m mobileanalytics

    # Longer resume window, file-backed store
    python -m mobileanalytics --resume-delay 10000 --store file --data-dir /tmp/analytics
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from mobileanalytics.core import constants as C
from mobileanalytics.core.clock import ManualClock
from mobileanalytics.core.config import (
    AnalyticsConfig,
    AnalyticsContext,
    SessionConfig,
    StoreConfig,
)
from mobileanalytics.event.client import InMemoryEventClient
from mobileanalytics.observability.logging import LogLevel, setup_logging
from mobileanalytics.observability.metrics import MetricsCollector
from mobileanalytics.session.client import SessionClient

# (label, operation, milliseconds to advance the clock before it)
DEMO_SCRIPT: tuple[tuple[str, str, int], ...] = (
    ("launch", "start", 0),
    ("app backgrounded", "pause", 30_000),
    ("back within the resume delay", "resume", 1_000),
    ("custom event", "record", 2_000),
    ("app backgrounded", "pause", 10_000),
    ("back after the resume delay", "resume", 60_000),
    ("explicit exit", "stop", 45_000),
    ("exit again", "stop", 0),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mobileanalytics",
        description="Run a scripted session lifecycle and print the emitted events.",
    )
    parser.add_argument(
        "--resume-delay", type=int, default=C.DEFAULT_RESUME_DELAY_MS,
        help="Longest pause (ms) a resume still reattaches to (default: %(default)s)",
    )
    parser.add_argument(
        "--restart-delay", type=int, default=C.DEFAULT_RESTART_DELAY_MS,
        help="Restart delay (ms), reported only (default: %(default)s)",
    )
    parser.add_argument(
        "--store", choices=("memory", "file"), default="memory",
        help="Session store backend (default: %(default)s)",
    )
    parser.add_argument(
        "--data-dir", type=Path, default=Path("./data/analytics"),
        help="Directory for the file store (default: %(default)s)",
    )
    parser.add_argument(
        "--json-logs", action="store_true",
        help="Emit JSON log lines instead of plain text",
    )
    parser.add_argument(
        "--log-level", default="WARNING", choices=[level.name for level in LogLevel],
    )
    return parser


def run_demo(args: argparse.Namespace, out: Optional[TextIO] = None) -> SessionClient:
    """Drive DEMO_SCRIPT through a fresh client and print what happens (to stdout by default)."""
    out = out or sys.stdout
    session = SessionConfig.from_mapping({
        C.RESUME_DELAY_CONFIG_KEY: args.resume_delay,
        C.RESTART_DELAY_CONFIG_KEY: args.restart_delay,
    })
    config = AnalyticsConfig(
        session=session,
        store=StoreConfig(backend=args.store, data_dir=args.data_dir),
    )
    context = AnalyticsContext.create(app_id="demo", config=config)

    clock = ManualClock()
    events = InMemoryEventClient()
    metrics = MetricsCollector()
    client = SessionClient.create(context, events, clock=clock, metrics=metrics)

    print(f"Initial state: {client.state.name}", file=out)
    print(f"Resume delay: {client.resume_delay_ms}ms, restart delay: {client.restart_delay_ms}ms", file=out)

    for label, operation, advance_ms in DEMO_SCRIPT:
        clock.advance(advance_ms)
        if operation == "record":
            client.record_event("demo.buttonTap", {"screen": "home"}, {"taps": 1.0})
        else:
            getattr(client, operation)()

        print(f"\n+{advance_ms}ms {operation} ({label}) -> {client.state.name}", file=out)
        for event in events.drain():
            session_id = event.session_id or "-"
            print(f"  {event.event_type:<16} session={session_id}", file=out)
            for key, value in sorted(event.attributes.items()):
                print(f"    {key} = {value}", file=out)
            for key, value in sorted(event.metrics.items()):
                print(f"    {key} = {value:g}", file=out)

    print("\nMetrics:", file=out)
    print(metrics.export_prometheus(), file=out)
    return client


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(LogLevel.from_name(args.log_level), json_output=args.json_logs)
    try:
        run_demo(args)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
