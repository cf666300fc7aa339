"""
Copyright Matcher Command Line
==============================

Entry point for running scans and enforcement actions by hand.

Usage:
    copyright-matcher scan ORIGINAL CANDIDATE [--interval 1 --interval 5]
    copyright-matcher action MATCH_ID takedown
    copyright-matcher show MATCH_ID

Exit Codes:
    0  success
    1  scan could not assess the media (unavailable)
    2  invalid request (bad action type, unknown match, review required)
    3  upstream rate limiting
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from copyright_matcher import config
from copyright_matcher.actions import (
    ActionWorkflow,
    InvalidActionError,
    MatchNotFoundError,
    NoticeGenerator,
    ReviewRequiredError,
)
from copyright_matcher.engine import create_engine
from copyright_matcher.errors import RateLimitedError
from copyright_matcher.models.match import Unavailable
from copyright_matcher.storage import get_connection, get_match, list_activity


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copyright-matcher",
        description="Score candidate uploads against original media and act on matches",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: COPYRIGHT_CONFIG or ./config.yaml)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="DuckDB database path (default: storage.db_path)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Compare a candidate URL against an original")
    scan.add_argument("original", help="Original media URL, file:// URI or path")
    scan.add_argument("candidate", help="Candidate media URL")
    scan.add_argument(
        "--interval",
        type=float,
        action="append",
        dest="intervals",
        help="Sampling interval in seconds (repeatable, default: sampler.intervals)",
    )
    scan.add_argument("--platform", type=str, default=None, help="Override platform label")

    action = subparsers.add_parser("action", help="Apply an enforcement action to a match")
    action.add_argument("match_id", help="Match identifier")
    action.add_argument("action_type", help="takedown, infringement_email or ignored")
    action.add_argument(
        "--automated",
        action="store_true",
        help="Mark the action as taken without operator review",
    )

    show = subparsers.add_parser("show", help="Print a match with its action history")
    show.add_argument("match_id", help="Match identifier")

    return parser


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = config.settings
    if args.config:
        settings = config.load_config(args.config)
        config.setup_logging(settings)

    conn = get_connection(args.db or settings.storage.db_path)
    try:
        if args.command == "scan":
            return _run_scan(args, settings, conn)
        if args.command == "action":
            return _run_action(args, settings, conn)
        return _run_show(args, settings, conn)
    finally:
        conn.close()


def _run_scan(args, settings, conn) -> int:
    engine = create_engine(settings, conn)
    try:
        result = asyncio.run(
            engine.scan(
                args.original,
                args.candidate,
                intervals=args.intervals,
                platform=args.platform,
            )
        )
    except RateLimitedError as e:
        logger.error(f"Scan rate limited: {e}")
        return 3

    if isinstance(result, Unavailable):
        _print_json(result.to_dict())
        return 1

    _print_json(result.model_dump(mode="json") | {"requires_review": result.requires_review})
    return 0


def _create_workflow(settings, conn) -> ActionWorkflow:
    return ActionWorkflow(
        conn,
        NoticeGenerator(
            notice_dir=settings.actions.notice_dir,
            base_url=settings.actions.notice_base_url,
            sender_name=settings.actions.sender_name,
        ),
    )


def _run_action(args, settings, conn) -> int:
    workflow = _create_workflow(settings, conn)
    try:
        action = workflow.apply_action(args.match_id, args.action_type, automated=args.automated)
    except (InvalidActionError, MatchNotFoundError, ReviewRequiredError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    _print_json(action.model_dump(mode="json"))
    return 0


def _run_show(args, settings, conn) -> int:
    match = get_match(conn, args.match_id)
    if match is None:
        print(f"error: no copyright match with id {args.match_id!r}", file=sys.stderr)
        return 2

    state = _create_workflow(settings, conn).current_state(match.id)
    _print_json(
        match.model_dump(mode="json")
        | {
            "requires_review": match.requires_review,
            "state": state.value,
            "activity": list_activity(conn, match.id),
        }
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
