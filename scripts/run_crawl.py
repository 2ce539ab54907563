"""
Run the whisky catalog crawl from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
from collections.abc import Sequence
from dataclasses import asdict

from app.crawler.engine import CrawlOptions
from app.crawler.errors import CrawlError
from app.services.crawl_service import CrawlService

logger = logging.getLogger("scripts.run_crawl")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crawl the whisky catalog into PostgreSQL.")
    parser.add_argument("--start-id", type=int, default=1, help="First id to crawl (default 1).")
    parser.add_argument("--max-id", type=int, default=None, help="Last id to crawl.")
    parser.add_argument(
        "--find-max-id",
        action="store_true",
        help="Estimate the highest valid id before crawling (ignored with --max-id).",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Start after the last processed id stored in the progress checkpoint.",
    )
    parser.add_argument("--concurrency", type=int, default=None, help="Worker threads (default 10).")
    parser.add_argument("--batch-size", type=int, default=None, help="Records per buffered batch.")
    parser.add_argument(
        "--flush-interval-ms",
        type=int,
        default=None,
        help="Periodic buffer flush interval in milliseconds.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and parse without writing to the database.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default INFO).")
    return parser


def options_from_args(args: argparse.Namespace) -> CrawlOptions:
    for name in ("start_id", "max_id", "concurrency", "batch_size", "flush_interval_ms"):
        value = getattr(args, name)
        if value is not None and value < 1:
            raise ValueError(f"--{name.replace('_', '-')} must be a positive integer.")
    if args.max_id is not None and args.max_id < args.start_id:
        raise ValueError("--max-id must be greater than or equal to --start-id.")

    return CrawlOptions(
        start_id=args.start_id,
        max_id=args.max_id,
        find_max_id=args.find_max_id,
        resume=args.resume,
        concurrency=args.concurrency,
        batch_size=args.batch_size,
        flush_interval_seconds=args.flush_interval_ms / 1000 if args.flush_interval_ms else None,
        dry_run=args.dry_run,
    )


def _install_stop_handlers(service: CrawlService) -> None:
    def _handle(signum: int, _frame: object) -> None:
        logger.warning("Received %s, finishing in-flight ids before stopping", signal.Signals(signum).name)
        service.request_stop()
        # A second signal falls back to the default behaviour.
        signal.signal(signum, signal.SIG_DFL)

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main(argv: Sequence[str] | None = None, *, service: CrawlService | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        options = options_from_args(args)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    service = service or CrawlService()
    _install_stop_handlers(service)
    try:
        summary = service.run(options)
    except CrawlError as exc:
        logger.error("Crawl failed: %s", exc)
        return 1
    except Exception:
        logger.exception("Crawl aborted by an unexpected error")
        return 1

    print(json.dumps(asdict(summary), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
