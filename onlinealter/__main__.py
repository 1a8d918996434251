"""Module entrypoint to run `python -m onlinealter`."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Sequence

from .command import CliGenerator
from .config import load_config
from .connection import ConnectionDetails
from .errors import CommandBuildError, CommandError, ConfigError
from .log import build_logger
from .runner import CancellationToken, Runner
from .statements import Route, route

EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onlinealter",
        description="Run an ALTER TABLE statement through pt-online-schema-change.",
    )
    parser.add_argument("statement", help="ALTER TABLE statement to apply")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--table", default=None, help="Target table (defaults to the statement's table)")
    parser.add_argument("--dry-run", action="store_true", help="Pass --dry-run instead of --execute")
    parser.add_argument("--quiet", action="store_true", help="Only show errors, warnings and the summary")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)

    if route(args.statement) is not Route.ENGINE:
        print("Only ALTER TABLE statements are handled; run other statements with your client.", file=sys.stderr)
        return EXIT_USAGE

    try:
        config = load_config(args.config)
        options = config.tool.with_dry_run() if args.dry_run else config.tool
        details = ConnectionDetails.build(config.connection)
        command = CliGenerator(details, options).generate(args.table, args.statement)
    except (ConfigError, CommandBuildError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    runner = Runner(
        build_logger(verbose=options.verbose and not args.quiet),
        tail_size=options.tail_size,
        terminate_grace=options.terminate_grace,
        error_log=options.error_log,
    )
    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda *_: token.cancel())
    try:
        result = runner.run(command, cancel=token)
    except CommandError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        signal.signal(signal.SIGINT, previous)

    if result.cancelled:
        return EXIT_CANCELLED
    if not result.success:
        print(result.diagnostics(), file=sys.stderr)
        return EXIT_FAILED
    return 0


if __name__ == "__main__":
    sys.exit(main())
