"""Command line access to the scheduler for inspecting single cards."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from fsrs_core.card_state import Card, _parse_datetime
from fsrs_core.errors import SchedulerError
from fsrs_core.fsrs_scheduler import FSRSScheduler
from fsrs_core.parameters import DEFAULT_PARAMETERS, load_parameters

logger = logging.getLogger(__name__)


def _load_card(path: Path) -> Card:
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return Card.from_storage(payload)


def _resolve_now(value: Optional[str]) -> datetime:
    if value:
        parsed = _parse_datetime(value)
        if parsed is not None:
            return parsed
    return datetime.now(tz=timezone.utc)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fsrs-core",
        description="Preview or apply FSRS-5 scheduling for a card stored as JSON.",
    )
    parser.add_argument(
        "--parameters",
        type=Path,
        help="JSON file with FSRS parameters (defaults to the built-in FSRS-5 set).",
    )
    parser.add_argument(
        "--now",
        help="ISO-8601 review time (defaults to the current UTC time).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    preview = commands.add_parser("preview", help="Show the outcome of every rating.")
    preview.add_argument("card", type=Path, help="Card JSON file.")

    schedule = commands.add_parser("schedule", help="Apply one rating and print the result.")
    schedule.add_argument("card", type=Path, help="Card JSON file.")
    schedule.add_argument("rating", help="again, hard, good, easy or 1-4.")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> Dict[str, Any]:
    parameters = load_parameters(args.parameters) if args.parameters else DEFAULT_PARAMETERS
    scheduler = FSRSScheduler(parameters)
    card = _load_card(args.card)
    now = _resolve_now(args.now)
    logger.debug("Scheduling %s at %s", card.card_id, now.isoformat())

    if args.command == "preview":
        return {
            grade.name.lower(): result.to_storage_dict()
            for grade, result in scheduler.preview(card, now).items()
        }
    scheduled, log = scheduler.review(card, args.rating, now)
    return {"card": scheduled.to_storage_dict(), "log": log.to_storage_dict()}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        result = run(args)
    except (SchedulerError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
