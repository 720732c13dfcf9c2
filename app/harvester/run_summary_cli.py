from __future__ import annotations

"""CLI helper for printing a harvest run summary."""

import argparse
from typing import Sequence

from . import db

_FIELDS = (
    "owner_id",
    "source_url",
    "status",
    "reason",
    "iterations",
    "records",
    "truncated",
    "persisted",
    "error_code",
    "error_message",
    "started_at",
    "ended_at",
)


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the run summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the outcome of a harvest run.",
    )
    parser.add_argument(
        "--run-id",
        type=int,
        help="Run ID to summarise.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Summarise the most recent run.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the run summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    db.initialize_schema()
    run_id = args.run_id
    if args.latest and run_id is None:
        run_id = db.latest_run_id()
    if run_id is None:
        parser.error("You must provide --run-id or --latest")

    run = db.get_run(run_id)
    if run is None:
        parser.error(f"Run {run_id} not found")

    print(f"Run {run['id']}")
    for name in _FIELDS:
        value = run.get(name)
        if value is None:
            continue
        print(f"  {name}: {value}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
