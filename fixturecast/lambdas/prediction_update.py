"""
Scheduled prediction update (AWS Lambda entry point).

Event:
    {"type": "scheduled-prediction-update", "automated": true,
     "matchIds": [...], "leagueIds": [...], "forceUpdate": false}

Without matchIds, every upcoming dashboard fixture (filtered by leagueIds) is
updated. Ids are sent to POST /api/predictions/update in batches of 10.
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

BATCH_SIZE = 10
ERROR_ALERT_RATE = 0.10


async def run(event: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> dict:
    start_time = time.time()
    event_type = event.get("type", "scheduled-prediction-update")
    force_update = bool(event.get("forceUpdate", False))
    processed = 0
    errors: list[dict] = []

    try:
        async with callback_client(transport) as client:
            match_ids = [str(m) for m in event.get("matchIds") or []]
            if not match_ids:
                match_ids = await upcoming_match_ids(client, event.get("leagueIds"))
            logger.info(f"Processing {event_type} for {len(match_ids)} matches")

            for number, batch in enumerate(batched(match_ids, BATCH_SIZE), start=1):
                try:
                    response = await client.post(
                        "/api/predictions/update",
                        json={"matchIds": batch, "forceUpdate": force_update},
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.error(f"Batch {number} failed: {e}")
                    errors.extend({"matchId": m, "error": str(e)} for m in batch)
                    continue
                result = response.json()
                processed += result.get("processed", 0)
                errors.extend(result.get("errors") or [])
    except httpx.HTTPError as e:
        logger.error(f"Prediction update failed: {e}")
        return {
            "statusCode": 500,
            "body": json.dumps({"success": False, "error": str(e), "duration": elapsed_ms(start_time)}),
        }

    summary = {
        "success": True,
        "processedMatches": processed,
        "totalMatches": len(match_ids),
        "errors": len(errors),
        "duration": elapsed_ms(start_time),
    }
    alert_if_needed("prediction-update", len(errors), len(match_ids), ERROR_ALERT_RATE,
                    {**summary, "errorDetails": errors[:10]})
    logger.info(f"Prediction update completed: {summary}")
    return {"statusCode": 200, "body": json.dumps(summary)}


def handler(event, context):
    logger.info(f"Prediction update triggered: {json.dumps(event)}")
    return asyncio.run(run(event or {}))
