"""Main entry point with CLI."""
import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from coverage_sync.config import config
from coverage_sync.logging_conf import setup_logging
from coverage_sync.jobs.runner import build_runner

import logging

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Bling purchase/sale coverage sync")

    # Mode flags
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (local sheet file, verbose logs, dry run)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run: collect and reconcile, but do not write the sheet or advance the checkpoint",
    )

    # Window
    parser.add_argument(
        "--since",
        type=date.fromisoformat,
        default=None,
        help="Collect from this date (YYYY-MM-DD) instead of the stored checkpoint",
    )

    # Storage / performance
    parser.add_argument(
        "--cache-backend",
        choices=["json", "sqlite"],
        default=None,
        help=f"Record cache backend (default: {config.CACHE_BACKEND})",
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help=f"Requests per second (default: {config.RATE_PER_SECOND})",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    # Setup logging
    setup_logging()

    # Parse args
    args = parse_args(argv)

    is_dev = args.dev
    is_dry_run = args.dry_run or is_dev

    if is_dev:
        # Set log level to DEBUG for verbose output
        logging.getLogger().setLevel(logging.DEBUG)

    if args.rate:
        config.RATE_PER_SECOND = args.rate
    if args.cache_backend:
        config.CACHE_BACKEND = args.cache_backend

    # Validate config (no Google token needed for the local sheet)
    try:
        config.validate(require_sheets=not is_dev)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Coverage Sync Starting")
    logger.info(f"Mode: {'DEV' if is_dev else 'PROD'}")
    logger.info(f"Since: {args.since.isoformat() if args.since else 'checkpoint'}")
    logger.info(f"Rate: {config.RATE_PER_SECOND} req/s, daily limit {config.DAILY_LIMIT}")
    logger.info(f"Cache backend: {config.CACHE_BACKEND}")
    logger.info(f"Dry-run: {is_dry_run}")
    logger.info("=" * 60)

    try:
        runner = build_runner(
            dev_mode=is_dev,
            dry_run=is_dry_run,
            since=args.since,
            cache_backend=config.CACHE_BACKEND,
        )
        asyncio.run(runner.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
