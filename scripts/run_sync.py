#!/usr/bin/env python3
"""
Cron job script to sync every tagged product with current StockX prices.
Add to crontab: 0 */6 * * * cd /path/to/app && /path/to/venv/bin/python scripts/run_sync.py

This runs the sync as a standalone script, not through the web server.
"""

import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sneaker_sync.config import settings
from sneaker_sync.db import LogStatus, TriggerType
from sneaker_sync.dependencies import (
    build_engine,
    close_dependencies,
    get_db,
    get_pipeline,
    init_dependencies,
    open_storefront,
)
from sneaker_sync.processor import run_bulk_sync

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def main() -> int:
    logger.info("Starting scheduled sync...")

    await init_dependencies()

    try:
        async with open_storefront() as gateway:
            log = await run_bulk_sync(
                gateway,
                get_pipeline(),
                build_engine(gateway),
                get_db(),
                sync_tag=settings.sync_tag,
                triggered_by=TriggerType.SCHEDULER,
                concurrency=settings.bulk_concurrency,
                item_delay=settings.bulk_item_delay,
            )

        logger.info(
            f"Sync completed: {log.items_updated} updated, {log.items_skipped} skipped, "
            f"{log.items_failed} failed"
        )

        if log.status == LogStatus.FAILED or log.items_failed:
            if log.error_details:
                for line in log.error_details.splitlines():
                    logger.error(f"  {line}")
            elif log.error_message:
                logger.error(log.error_message)
            return 1
        return 0

    finally:
        await close_dependencies()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
