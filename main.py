#!/usr/bin/env python3
"""Auto-accept worker entry point.

Usage:
    python main.py            # poll for due reservations until stopped
    python main.py --once     # resolve everything currently due and exit
"""

from __future__ import annotations

import argparse
import asyncio
import signal
from typing import List, Optional

from bootstrap import DependencyContainer
from infrastructure.settings import get_settings
from logging_config import get_logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Court booking auto-accept worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass over due reservations and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug output on the console",
    )
    return parser


async def run_worker(container: DependencyContainer, *, once: bool) -> int:
    """Run the scheduler; returns the number of evaluations performed."""

    logger = get_logger('Main')
    scheduler = container.scheduler

    if once:
        outcomes = await scheduler.run_due()
        logger.info("Single pass finished: %s reservation(s) evaluated", len(outcomes))
        logger.info(scheduler.stats.format_report())
        return len(outcomes)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, scheduler.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    await scheduler.run_async()
    logger.info(scheduler.stats.format_report())
    return scheduler.stats.evaluations


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings, verbose=args.verbose)

    logger = get_logger('Main')
    logger.info("=" * 50)
    logger.info("Court booking auto-accept worker")
    logger.info("=" * 50)

    container = DependencyContainer(settings)
    try:
        logger.info("🚀 Starting worker...")
        asyncio.run(run_worker(container, once=args.once))
    except KeyboardInterrupt:
        logger.info("✅ Stopped by user (Ctrl+C)")


if __name__ == '__main__':
    main()
