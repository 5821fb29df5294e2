#!/usr/bin/env python3
"""
Run one collection pass outside the web process.

Intended for cron / scheduled jobs:

    python scripts/collect.py

Configuration comes from the same PLAYSCANNER_* environment variables
as the API.  Exits non-zero when every (city, date) pair failed.
"""

import asyncio
import logging
import sys
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from playscanner.config import Settings  # noqa: E402
from playscanner.services.container import build_services  # noqa: E402

logger = logging.getLogger("playscanner.scripts.collect")


async def run() -> int:
    settings = Settings.from_env()
    services = build_services(settings)
    await services.store.open()
    try:
        summary = await services.collector.collect_all()
        await services.store.cleanup()
    finally:
        await services.registry.close()
        await services.store.close()

    logger.info(
        "Collection %s: %d/%d pairs, %d slots, %d venues in %dms",
        summary.status,
        summary.succeeded,
        summary.total_attempted,
        summary.total_collected,
        summary.total_venues,
        summary.collection_time,
    )
    for item in summary.results:
        if item.error:
            logger.warning("  %s %s: %s", item.city, item.date, item.error)
    return 1 if summary.status == "error" else 0


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
