"""
Scheduled match status check (AWS Lambda entry point).

Sends match ids to POST /api/matches/check in batches of 15 and totals how
many were checked, how many got results written and how many are in play.
"""

import asyncio
import json
import logging
import time
from typing import Optional

import httpx

from fixturecast.lambdas._callback import (
    alert_if_needed,
    batched,
    callback_client,
    elapsed_ms,
    upcoming_match_ids,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

BATCH_SIZE = 15
ERROR_ALERT_RATE = 0.15


async def run(event: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> dict:
    start_time = time.time()
    checked = updated = live = 0
    errors: list[dict] = []

    try:
        async with callback_client(transport) as client:
            match_ids = [str(m) for m in event.get("matchIds") or []]
            if not match_ids:
                match_ids = await upcoming_match_ids(client)
            logger.info(f"Processing {event.get('type', 'scheduled-match-check')} for {len(match_ids)} matches")

            for number, batch in enumerate(batched(match_ids, BATCH_SIZE), start=1):
                try:
                    response = await client.post("/api/matches/check", json={"matchIds": batch})
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"Batch {number} failed: {e}")
                    errors.extend({"matchId": m, "error": str(e)} for m in batch)
                    continue
                result = response.json()
                checked += result.get("checked", 0)
                updated += result.get("updated", 0)
                live += result.get("live", 0)
                errors.extend(result.get("errors") or [])
    except httpx.HTTPError as e:
        logger.error(f"Match check failed: {e}")
        return {
            "statusCode": 500,
            "body": json.dumps({"success": False, "error": str(e), "duration": elapsed_ms(start_time)}),
        }

    summary = {
        "success": True,
        "checkedMatches": checked,
        "updatedMatches": updated,
        "liveMatches": live,
        "totalMatches": len(match_ids),
        "errors": len(errors),
        "duration": elapsed_ms(start_time),
    }
    alert_if_needed("match-check", len(errors), len(match_ids), ERROR_ALERT_RATE,
                    {**summary, "errorDetails": errors[:10]})
    logger.info(f"Match check completed: {summary}")
    return {"statusCode": 200, "body": json.dumps(summary)}


def handler(event, context):
    logger.info(f"Match check triggered: {json.dumps(event)}")
    return asyncio.run(run(event or {}))
