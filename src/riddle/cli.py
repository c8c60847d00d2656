"""Riddle CLI — command-line interface for the rotator and submissions.

Usage:
    python -m riddle.cli state
    python -m riddle.cli rotate
    python -m riddle.cli submit --answer gold
    python -m riddle.cli serve --port 8888
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from riddle.config import RiddleConfig
from riddle.errors import ConfigurationError
from riddle.service import RiddleService, ServiceResult


def _make_service(args: argparse.Namespace, require_publisher: bool) -> RiddleService:
    """Create a RiddleService from the environment (and .env file)."""
    config = RiddleConfig.from_env(env_file=args.env_file)
    return RiddleService(config, require_publisher=require_publisher)


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    if result.data:
        print(json.dumps(result.data, indent=2))
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_state(args: argparse.Namespace) -> int:
    service = _make_service(args, require_publisher=False)
    return _report(service.state())


def cmd_rotate(args: argparse.Namespace) -> int:
    service = _make_service(args, require_publisher=True)
    return _report(service.rotate())


def cmd_submit(args: argparse.Namespace) -> int:
    """Submit an answer with a participant key and report the reconciled result."""
    # Loads the .env file, which may hold the participant key.
    service = _make_service(args, require_publisher=False)
    key = os.getenv(args.key_env)
    if not key:
        print(f"Missing {args.key_env} environment variable", file=sys.stderr)
        return 1
    return _report(service.submit_answer(key, args.answer))


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from riddle.api.server import create_app

    service = _make_service(args, require_publisher=True)
    uvicorn.run(create_app(service), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="riddle",
        description="Onchain riddle — rotator and answer submission CLI",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file (default: search from the working directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # state
    sub.add_parser("state", help="Show the current riddle, activity and winner")

    # rotate
    sub.add_parser("rotate", help="Publish the next riddle if the current one is inactive")

    # submit
    p_submit = sub.add_parser("submit", help="Submit an answer and wait for the result")
    p_submit.add_argument("--answer", required=True, help="Answer (letters only)")
    p_submit.add_argument(
        "--key-env",
        default="PARTICIPANT_PRIVATE_KEY",
        help="Environment variable holding the participant key "
             "(default: PARTICIPANT_PRIVATE_KEY)",
    )

    # serve
    p_serve = sub.add_parser("serve", help="Run the HTTP trigger server")
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    p_serve.add_argument("--port", type=int, default=8888, help="Port (default: 8888)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "state": cmd_state,
        "rotate": cmd_rotate,
        "submit": cmd_submit,
        "serve": cmd_serve,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
