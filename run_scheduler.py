#!/usr/bin/env python3
"""
Background runner for the automation scheduler.

Runs the current-season sync schedule as a standalone service, separate
from the API process. Use the redis key-value backend so this process and
the API share one sync lock.

Usage:
    python run_scheduler.py              # Run in foreground
    python run_scheduler.py --run-now    # Run the current-season sync once and exit
"""
import asyncio
import argparse
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.config import settings
from app.core.database import init_db
from app.core.kv_store import close_kv_store
from app.core.logging import configure_logging, get_logger
from app.core.scheduler import AutomationScheduler

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the automation scheduler."""

    def __init__(self):
        self.scheduler: AutomationScheduler = None
        self.shutdown = asyncio.Event()

    async def start(self):
        """Start the scheduler and run until shutdown."""
        logger.info("🚀 Starting scheduler runner...")

        self.scheduler = AutomationScheduler()
        await self.scheduler.start()

        logger.info("✅ Scheduler is now running")
        logger.info("Press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        await self.shutdown.wait()

        await self.scheduler.stop()
        await close_kv_store()
        logger.info("✅ Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("⏹️  Shutdown signal received")
        self.shutdown.set()


async def run_once():
    try:
        await AutomationScheduler.run_current_season_sync()
    finally:
        await close_kv_store()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Run the match sync automation scheduler'
    )
    parser.add_argument(
        '--run-now',
        action='store_true',
        help='Run the current-season sync once and exit'
    )
    args = parser.parse_args()

    init_db()

    if args.run_now:
        asyncio.run(run_once())
        return 0

    runner = SchedulerRunner()
    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("🛑 Received interrupt, shutting down...")
    return 0


if __name__ == '__main__':
    sys.exit(main())
