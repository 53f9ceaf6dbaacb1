#!/usr/bin/env python3
"""Inspect and drive division brackets stored in DynamoDB.

Subcommands:
    show      Print a division bracket
    generate  Rebuild a division bracket from its current roster
    report    Record the winner of a match and advance it (byes included)
    dump      Print participants and matches as JSON

Table and guild default to ``TOURNAMENT_TABLE_NAME`` and
``TOURNAMENT_GUILD_ID``.
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import random
import sys
from collections.abc import Sequence
from dataclasses import asdict
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from division_bracket import (  # noqa: E402
    BracketStorage,
    InvalidValueError,
    TournamentService,
)
from division_bracket.config import configure_logging, read_settings  # noqa: E402

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = read_settings()
    parser = argparse.ArgumentParser(
        description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--table",
        default=settings.table_name,
        help="DynamoDB table name that stores tournament data",
    )
    parser.add_argument(
        "--guild",
        type=int,
        default=settings.guild_id,
        help="Guild id whose records should be used",
    )
    parser.add_argument("--profile", help="Optional AWS profile to use")
    parser.add_argument(
        "--region",
        default=settings.aws_region,
        help="AWS region (default: AWS_REGION or us-east-1)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=settings.bracket_seed,
        help="Seed for the bracket shuffle (default: random)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Print a division bracket")
    show.add_argument("division")

    generate = subparsers.add_parser("generate", help="Rebuild a division bracket")
    generate.add_argument("division")

    report = subparsers.add_parser(
        "report",
        help="Record a match winner; byes advance only once reported",
    )
    report.add_argument("match_id", type=int)
    report.add_argument("winner_id", type=int)

    dump = subparsers.add_parser("dump", help="Print records as JSON")
    dump.add_argument("--division", help="Limit output to one division")
    return parser


def build_service(args: argparse.Namespace, table=None) -> TournamentService:
    if table is None:
        session_kwargs: dict[str, Any] = {}
        if args.profile:
            session_kwargs["profile_name"] = args.profile
        if args.region:
            session_kwargs["region_name"] = args.region
        session = boto3.Session(**session_kwargs)
        table = session.resource("dynamodb").Table(args.table)
    rng = random.Random(args.seed) if args.seed is not None else random.Random()
    return TournamentService(BracketStorage(table, args.guild), rng=rng)


def run_command(args: argparse.Namespace, service: TournamentService) -> int:
    if args.command == "show":
        print(service.bracket_text(args.division))
        return 0

    if args.command == "generate":
        matches = service.generate_bracket(args.division)
        if matches is None:
            log.warning("Division %s has fewer than two participants", args.division)
            return 1
        print(service.bracket_text(args.division))
        return 0

    if args.command == "report":
        match = service.report_result(args.match_id, args.winner_id)
        if match is None:
            log.error("Match %s not found", args.match_id)
            return 1
        print(service.bracket_text(match.division))
        return 0

    if args.command == "dump":
        payload = {
            "participants": [
                asdict(entry) for entry in service.list_participants(args.division)
            ],
            "matches": [asdict(entry) for entry in service.list_matches(args.division)],
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None, *, table=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if table is None and not args.table:
        parser.error(
            "No DynamoDB table specified (use --table or TOURNAMENT_TABLE_NAME)"
        )
    if args.guild is None:
        parser.error("No guild specified (use --guild or TOURNAMENT_GUILD_ID)")

    service = build_service(args, table)
    try:
        return run_command(args, service)
    except InvalidValueError as exc:
        log.error("%s", exc)
        return 1
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network failure
        log.error("AWS request failed: %s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
