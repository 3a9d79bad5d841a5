#!/usr/bin/env python3
"""
Clear the dashboard backend's API-Football response cache.

Usage:
    python scripts/clear_cache.py
    python scripts/clear_cache.py --base-url http://localhost:8000
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from dotenv import load_dotenv

load_dotenv()

from fixturecast.config import get_settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Clear the API-Football response cache")
    parser.add_argument('--base-url', default=settings.APP_BASE_URL)
    args = parser.parse_args()

    if not settings.API_KEY:
        logger.error("API_KEY not set; admin endpoints require it")
        sys.exit(1)

    url = f"{args.base_url.rstrip('/')}/admin/cache/clear"
    try:
        response = httpx.post(url, headers={settings.API_KEY_HEADER: settings.API_KEY}, timeout=30)
    except httpx.RequestError as e:
        logger.error(f"Request failed: {e}")
        sys.exit(1)

    if response.status_code != 200:
        logger.error(f"Cache clear failed: {response.status_code} {response.text}")
        sys.exit(1)

    logger.info(f"Cache cleared: {response.json()}")


if __name__ == "__main__":
    main()
