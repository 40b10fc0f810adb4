"""
Main CLI entry point for sinklog.

Commands:
    sinklog init DATABASE
        Create the ``logs`` table if it does not exist yet.
    sinklog pipe DATABASE [--label L] [--level info|warn] [--interval S]
        Log every line read from stdin and drain on end of input.
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence, TextIO

from .. import start_logger
from ..core.levels import Severity, get_severity
from ..core.settings import Settings
from ..plugins.sinks.sqlite import SqliteStorage


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sinklog", description="Buffered SQLite log sink"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="create the logs table if missing")
    init.add_argument("database", help="SQLite database file")

    pipe = sub.add_parser("pipe", help="log stdin lines until end of input")
    pipe.add_argument("database", help="SQLite database file")
    pipe.add_argument("--label", default="", help="prefix stored with every line")
    pipe.add_argument(
        "--level", default="info", choices=["info", "warn"], help="severity of lines"
    )
    pipe.add_argument(
        "--interval",
        type=float,
        default=None,
        help="flush interval in seconds (defaults to settings)",
    )
    pipe.add_argument(
        "--quiet", action="store_true", help="do not echo lines to stderr"
    )
    return parser


async def _init(database: str) -> int:
    storage = SqliteStorage(path=database)
    await storage.start()
    await storage.close()
    print(f"initialized {database}")
    return 0


async def _pipe(args: argparse.Namespace, stream: TextIO) -> int:
    base = Settings()
    core_update: dict[str, object] = {"database_path": args.database}
    if args.interval is not None:
        core_update["flush_interval_seconds"] = args.interval
    if args.quiet:
        core_update["console_echo"] = False
    settings = base.model_copy(
        update={"core": base.core.model_copy(update=core_update)}
    )

    logger = await start_logger(args.label, settings=settings)
    log = logger.warn if get_severity(args.level) is Severity.WARN else logger.info
    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            break
        log(line.rstrip("\n"))
    logger.close()
    await logger.runtime.wait_drained()
    return 0


async def main(
    argv: Optional[Sequence[str]] = None, stdin: Optional[TextIO] = None
) -> int:
    """Main CLI entry point."""
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "init":
            return await _init(args.database)
        return await _pipe(args, stdin if stdin is not None else sys.stdin)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cli_main() -> int:
    """CLI main function for non-async entry."""
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(cli_main())
