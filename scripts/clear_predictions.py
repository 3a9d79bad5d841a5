#!/usr/bin/env python3
"""
Clear a day's predictions on the cron worker, then check the worker health.

Destructive: requires --yes.

Usage:
    python scripts/clear_predictions.py --yes
    python scripts/clear_predictions.py --date 2025-09-20 --yes
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from fixturecast.ops.worker_client import WorkerClient, WorkerError

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def run(date: str) -> int:
    client = WorkerClient()
    try:
        result = await client.clear_predictions(date)
        if not result.get("success"):
            logger.error(f"Clear failed: {result.get('message') or result.get('errors')}")
            return 1

        cleared = result.get("clearedKeys") or []
        logger.info(f"{result.get('message', 'Cleared')} ({len(cleared)} keys for {result.get('date')})")
        for key in cleared:
            print(f"  - {key}")
        for error in result.get("errors") or []:
            logger.warning(f"Worker reported: {error}")

        health = await client.prediction_health()
        progress = health.get("progress") or {}
        logger.info(
            f"After clear: predicted={progress.get('predicted', 0)}, "
            f"remaining={progress.get('remaining', 0)}"
        )
        if progress.get("predicted"):
            logger.warning("Worker still reports predictions for the day; the clear may be incomplete")
    except WorkerError as e:
        logger.error(f"Clear failed: {e}")
        return 1
    finally:
        await client.close()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Clear a day's predictions on the cron worker")
    parser.add_argument('--date', default=None, help='Day to clear, YYYY-MM-DD (default: today UTC)')
    parser.add_argument('--yes', action='store_true', help='Confirm the deletion')
    args = parser.parse_args()

    if not args.yes:
        parser.error("refusing to clear predictions without --yes")

    sys.exit(asyncio.run(run(args.date)))


if __name__ == "__main__":
    main()
