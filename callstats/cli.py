"""Top-level call statistics command line interface."""

from __future__ import annotations

import argparse
import json
from datetime import date as Date
from datetime import datetime
from pathlib import Path
from typing import Sequence

from callstats.config import load_config
from callstats.errors import CallStatsError, ConfigurationError
from callstats.jobs.scheduler import configure_runtime, upcoming_fire_times
from callstats.jobs.tasks import run_call_statistics


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="callstats", description="Call statistics report CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Build the call statistics report once")
    run_parser.add_argument("--date", type=Date.fromisoformat, help="Report date in YYYY-MM-DD format (default: today)")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the report instead of posting it to the configured chats",
    )
    run_parser.add_argument("--summary-out", type=Path, help="Optional JSON summary artifact path")
    run_parser.set_defaults(handler=_handle_run)

    next_parser = subparsers.add_parser("next-run", help="Show upcoming scheduled runs")
    next_parser.add_argument("--count", type=int, default=1, help="Number of upcoming runs to list")
    next_parser.set_defaults(handler=_handle_next_run)

    return parser


def _handle_run(args: argparse.Namespace) -> int:
    config = load_config()
    configure_runtime(config)

    result = run_call_statistics(config, report_date=args.date, dry_run=args.dry_run)
    if args.dry_run:
        print(result["report"])

    if args.summary_out:
        args.summary_out.parent.mkdir(parents=True, exist_ok=True)
        args.summary_out.write_text(
            json.dumps(
                {
                    "date": result["report_date"],
                    "policy": result["policy"],
                    "dry_run": args.dry_run,
                    "raw_calls": result["raw_calls"],
                    "attributed_calls": result["attributed_calls"],
                    "delivered": result["delivered"],
                    "failed": result["failed"],
                },
                indent=2,
            )
            + "\n"
        )
    return 1 if result["failed"] else 0


def _handle_next_run(args: argparse.Namespace) -> int:
    config = load_config()
    tz = config.tz
    for fire_time in upcoming_fire_times(config.schedule, datetime.now(tz=tz), tz, count=max(args.count, 1)):
        print(fire_time.isoformat())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except ConfigurationError as exc:
        parser.exit(2, f"callstats: configuration error: {exc}\n")
    except CallStatsError as exc:
        parser.exit(1, f"callstats: {exc}\n")


if __name__ == "__main__":
    raise SystemExit(main())
