"""
Command line entry point for the installed-apps loader
"""

import argparse
import asyncio
import glob
import logging
import sys
from typing import Dict, List, Optional, Sequence

from core.config import Settings
from core.exceptions import FatalIOError
from core.logging import setup_logging
from ingestion import codec
from ingestion.runner import LoaderRunner
from ingestion.shards import ShardTable

logger = logging.getLogger(__name__)

SHARD_FLAGS = ("idfa", "gaid", "adid", "dvid")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memc-load",
        description="Load installed-apps logs into memcached shards"
    )
    parser.add_argument("--pattern", help="glob of input files")
    for name in SHARD_FLAGS:
        parser.add_argument(f"--{name}", help=f"host:port of the {name} memcached")
    parser.add_argument(
        "--shard", action="append", default=[], metavar="NAME=HOST:PORT",
        help="add or replace a shard (repeatable)"
    )
    parser.add_argument("--workers", type=int, help="writer workers")
    parser.add_argument("--timeout", type=int, help="memcached timeout, ms")
    parser.add_argument("--retry", type=int, help="write attempts per record")
    parser.add_argument("--retry-delay", type=float, help="seconds between write attempts")
    parser.add_argument("--dry-run", action="store_true", default=None, help="log instead of writing")
    parser.add_argument("--log", help="also append logs to this file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--test", action="store_true", help="run the protobuf codec self-check")
    return parser


def _parse_shard(value: str) -> Dict[str, str]:
    name, sep, address = value.partition("=")
    if not sep or not name or not address:
        raise argparse.ArgumentTypeError(f"Expected NAME=HOST:PORT, got {value!r}")
    return {name: address}


def build_settings(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Overlay command line flags on settings read from the environment"""
    base = base or Settings()
    shards = dict(base.SHARDS)
    for name in SHARD_FLAGS:
        address = getattr(args, name)
        if address:
            shards[name] = address
    for value in args.shard:
        shards.update(_parse_shard(value))

    overrides = {
        "PATTERN": args.pattern,
        "WORKERS": args.workers,
        "TIMEOUT_MS": args.timeout,
        "RETRY": args.retry,
        "RETRY_DELAY": args.retry_delay,
        "DRY_RUN": args.dry_run,
        "LOG_FILE": args.log,
        "LOG_LEVEL": args.log_level,
    }
    data = base.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    data["SHARDS"] = shards
    return Settings(**data)


def discover_files(pattern: str) -> List[str]:
    """
    Expand the input pattern.

    Raises:
        FatalIOError: Nothing matches the pattern
    """
    paths = sorted(glob.glob(pattern))
    if not paths:
        raise FatalIOError(
            f"Files by pattern {pattern} not found",
            context={"file_path": pattern}
        )
    return paths


async def run_loader(settings: Settings, paths: Sequence[str]):
    # Clients are created inside the running loop
    shards = ShardTable.from_addresses(settings.SHARDS, settings.timeout_seconds)
    runner = LoaderRunner(settings, shards)
    return await runner.run(paths)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = build_settings(args)
    except (ValueError, argparse.ArgumentTypeError) as e:
        parser.error(str(e))

    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    if args.test:
        return 0 if codec.self_check() else 1

    try:
        paths = discover_files(settings.PATTERN)
        asyncio.run(run_loader(settings, paths))
    except FatalIOError as e:
        logger.critical(str(e), extra={"error_context": e.to_dict()})
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
