#!/usr/bin/env python3
"""
Prediction system diagnostic.

Reads the worker's /prediction-health, prints progress, detected issues and
the follow-up commands to run. With --check-app, also verifies that the
backend's stored predictions have 1X2 probabilities summing to ~100.

Usage:
    python scripts/prediction_diagnostic.py
    python scripts/prediction_diagnostic.py --check-app --tolerance 1
    python scripts/prediction_diagnostic.py --json
"""

import argparse
import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from dotenv import load_dotenv

load_dotenv()

from fixturecast.config import get_settings
from fixturecast.ops.worker_client import (
    WorkerClient,
    WorkerError,
    analyze_health,
    check_probability_sums,
    fetch_app_predictions,
    format_health_report,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def run(as_json: bool, check_app: bool, tolerance: int) -> int:
    client = WorkerClient()
    try:
        health = await client.prediction_health()
    except WorkerError as e:
        logger.error(f"Diagnostic failed: {e}")
        return 1
    finally:
        await client.close()

    analysis = analyze_health(health, client.trigger_url)

    if check_app:
        try:
            predictions = await fetch_app_predictions(get_settings().APP_BASE_URL)
        except (WorkerError, httpx.HTTPError, ValueError) as e:
            logger.error(f"Could not read stored predictions: {e}")
            return 1
        bad_sums = check_probability_sums(predictions, tolerance)
        analysis["checked_predictions"] = len(predictions)
        analysis["bad_probability_sums"] = bad_sums
        for item in bad_sums:
            analysis["issues"].append(f"Match {item['matchId']}: 1X2 probabilities sum to {item['sum']}")

    if as_json:
        print(json.dumps({"health": health, "analysis": analysis}, indent=2, default=str))
    else:
        print(format_health_report(health, analysis))
        if check_app:
            print(f"Checked {analysis['checked_predictions']} stored predictions, "
                  f"{len(analysis['bad_probability_sums'])} with bad probability sums")
    return 0 if not analysis["issues"] else 2


def main():
    parser = argparse.ArgumentParser(description="Prediction system diagnostic")
    parser.add_argument('--json', action='store_true', help='Print raw health + analysis as JSON')
    parser.add_argument('--check-app', action='store_true', help='Also check stored predictions on the backend')
    parser.add_argument('--tolerance', type=int, default=2, help='Allowed distance of 1X2 sum from 100')
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.json, args.check_app, args.tolerance)))


if __name__ == "__main__":
    main()
