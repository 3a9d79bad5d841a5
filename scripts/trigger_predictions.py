#!/usr/bin/env python3
"""
Trigger a prediction run on the cron worker.

Usage:
    python scripts/trigger_predictions.py
    python scripts/trigger_predictions.py --wave 10 --model gemini-2.0-flash
    python scripts/trigger_predictions.py --no-resume --force
"""

import argparse
import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from fixturecast.ops.worker_client import WorkerClient, WorkerError

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def run(resume: bool, wave: int, model: str, force: bool) -> int:
    client = WorkerClient()
    try:
        result = await client.trigger_predictions(resume=resume, wave=wave, model=model, force=force)
    except WorkerError as e:
        logger.error(f"Trigger failed: {e}")
        return 1
    finally:
        await client.close()

    print(json.dumps(result, indent=2, default=str))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Trigger scheduled predictions on the cron worker")
    parser.add_argument('--no-resume', dest='resume', action='store_false', help='Start from scratch instead of resuming')
    parser.add_argument('--wave', type=int, default=20, help='Matches per wave (default: 20)')
    parser.add_argument('--model', default=None, help='Override the worker LLM model')
    parser.add_argument('--force', action='store_true', help='Regenerate existing predictions')
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.resume, args.wave, args.model, args.force)))


if __name__ == "__main__":
    main()
