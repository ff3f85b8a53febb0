#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
import threading
from datetime import UTC, datetime, timedelta
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from auditfeed.app import show_feed, watch_feed
from auditfeed.config import ConfigurationError, configure_logging
from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.time_windows import TimeWindow
from auditfeed.domain.timeline import FeedScope

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from auditfeed.domain.timeline import FeedState

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect audit-log activity feeds")
    parser.add_argument(
        "command",
        choices=("show", "watch"),
        help="Compute the feed once, or keep it live until interrupted",
    )
    parser.add_argument(
        "--backend",
        choices=("sql", "supabase"),
        default="sql",
        help="Where to read the change log from (default: %(default)s)",
    )
    parser.add_argument(
        "--scope-kind",
        choices=[kind.value for kind in ReferenceKind],
        help="Entity kind whose feed to compute",
    )
    parser.add_argument("--scope-id", type=str, help="Entity id whose feed to compute")
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of raw rows in the window (defaults to config)",
    )
    parser.add_argument(
        "--start",
        type=str,
        help="ISO-8601 timestamp (UTC) marking the inclusive start of the window",
    )
    parser.add_argument(
        "--end",
        type=str,
        help="ISO-8601 timestamp (UTC) marking the inclusive end of the window",
    )
    parser.add_argument(
        "--lookback-hours",
        type=float,
        help="Relative lookback window in hours (overrides start if larger)",
    )
    parser.add_argument(
        "--poll-seconds",
        type=float,
        default=5.0,
        help="Polling interval for 'watch' (default: %(default)s)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _build_time_window(args: argparse.Namespace) -> TimeWindow | None:
    start = _parse_iso_datetime(args.start) if args.start else None
    end = _parse_iso_datetime(args.end) if args.end else None
    lookback = None
    if args.lookback_hours is not None:
        if args.lookback_hours < 0:
            raise ValueError("Lookback hours must be non-negative")
        lookback = timedelta(hours=args.lookback_hours)
    if any(value is not None for value in (start, end, lookback)):
        return TimeWindow(start=start, end=end, lookback=lookback)
    return None


def _build_scope(args: argparse.Namespace) -> FeedScope | None:
    if args.scope_kind is None and args.scope_id is None:
        return None
    if args.scope_kind is None or not args.scope_id:
        raise ValueError("--scope-kind and --scope-id must be given together")
    return FeedScope(kind=ReferenceKind(args.scope_kind), id=args.scope_id)


def _wait_for_interrupt() -> None:
    threading.Event().wait()


def print_feed(state: FeedState) -> None:
    if state.error:
        print(f"! {state.error} (showing last good feed)", file=sys.stderr)
    for event in state.events:
        print(f"{event.timestamp_text} ({event.relative_time})  {event.summary}")
        for line in event.change_lines:
            print(f"    {line}")
        if event.notes:
            print(f"    Notes: {event.notes}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        window = _build_time_window(parsed_args)
        scope = _build_scope(parsed_args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "show":
            state = show_feed(
                backend=parsed_args.backend,
                scope=scope,
                window=window,
                limit=parsed_args.limit,
            )
            print_feed(state)
            if not state.ok:
                sys.exit(1)
        else:
            controller = watch_feed(
                print_feed,
                backend=parsed_args.backend,
                scope=scope,
                window=window,
                limit=parsed_args.limit,
                poll_interval_seconds=parsed_args.poll_seconds,
            )
            try:
                _wait_for_interrupt()
            finally:
                controller.stop()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception:
        log.exception("Fatal error while computing the feed")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def cli() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    cli()
