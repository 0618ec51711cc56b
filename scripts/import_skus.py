#!/usr/bin/env python3
"""
Import StockX products into Shopify from a list of SKUs.
Usage: python scripts/import_skus.py <file with one SKU per line> [SKU ...]

Products already in the store (same SKU tag or title) are skipped.
"""

import asyncio
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sneaker_sync.config import settings
from sneaker_sync.db import TriggerType
from sneaker_sync.dependencies import (
    build_engine,
    close_dependencies,
    get_db,
    get_pipeline,
    init_dependencies,
    open_storefront,
)
from sneaker_sync.processor import run_bulk_import

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def read_skus(args) -> list:
    """SKUs from files (one per line, # comments allowed) or given directly."""
    skus = []
    for arg in args:
        if os.path.isfile(arg):
            with open(arg, encoding="utf-8") as f:
                for line in f:
                    line = line.split("#", 1)[0].strip()
                    if line:
                        skus.append(line)
        else:
            skus.append(arg.strip())
    return skus


async def main(skus) -> int:
    await init_dependencies()

    try:
        async with open_storefront() as gateway:
            log = await run_bulk_import(
                skus,
                get_pipeline(),
                build_engine(gateway),
                get_db(),
                triggered_by=TriggerType.MANUAL,
                concurrency=settings.bulk_concurrency,
                item_delay=settings.bulk_item_delay,
            )

        logger.info(
            f"Import completed: {log.items_created} created, {log.items_skipped} skipped, "
            f"{log.items_failed} failed"
        )
        if log.error_details:
            for line in log.error_details.splitlines():
                logger.error(f"  {line}")
        return 1 if log.items_failed else 0

    finally:
        await close_dependencies()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/import_skus.py <sku file or SKU> [...]")
        sys.exit(1)

    sys.exit(asyncio.run(main(read_skus(sys.argv[1:]))))
