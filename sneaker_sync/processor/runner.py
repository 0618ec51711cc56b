"""
Runners for syncing or importing one product and for batch runs.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..db import LogStatus, RunKind, SQLiteDatabase, SyncLog, TriggerType
from ..utils.pacing import BoundedPool, jitter
from .models import (
    ExistingProduct,
    FetchFailure,
    ProductRef,
    ResultStatus,
    SyncOutcome,
    SyncResult,
)
from .pipeline import PriceFetchPipeline
from .reconcile import ReconciliationEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Random delay before each batch item, on top of the fixed inter-item delay
ITEM_JITTER = 0.5


async def sync_product(
    product: ExistingProduct,
    sku: str,
    pipeline: PriceFetchPipeline,
    engine: ReconciliationEngine,
) -> SyncResult:
    """Fetch fresh prices for ``sku`` and converge ``product`` to them."""
    snapshot = await pipeline.fetch(sku)
    if isinstance(snapshot, FetchFailure):
        logger.warning(f"Price fetch failed for {sku}: {snapshot.message}")
        result = SyncResult.from_failure(snapshot)
        result.title = product.title
        result.product_id = product.id
        return result

    return await engine.reconcile(product, snapshot)


async def import_product(
    sku: str,
    pipeline: PriceFetchPipeline,
    engine: ReconciliationEngine,
) -> SyncResult:
    """Fetch prices for ``sku`` and create it as a new storefront product."""
    snapshot = await pipeline.fetch(sku)
    if isinstance(snapshot, FetchFailure):
        logger.warning(f"Price fetch failed for {sku}: {snapshot.message}")
        return SyncResult.from_failure(snapshot)

    return await engine.reconcile(None, snapshot)


async def run_bulk_sync(
    gateway,
    pipeline: PriceFetchPipeline,
    engine: ReconciliationEngine,
    db: SQLiteDatabase,
    sync_tag: str,
    triggered_by: TriggerType = TriggerType.SCHEDULER,
    products: Optional[List[ProductRef]] = None,
    concurrency: int = 1,
    item_delay: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SyncLog:
    """
    Sync every product carrying the sync tag (or the given products).

    Returns:
        The finished run log
    """
    log = await db.create_log(RunKind.SYNC, triggered_by)

    if products is None:
        try:
            products = await gateway.list_synced_products(sync_tag)
        except Exception as e:
            logger.exception("Listing synced products failed")
            return await db.update_log(
                log.id,
                status=LogStatus.FAILED,
                finished_at=datetime.utcnow(),
                error_message=f"Listing synced products failed: {e}",
            )

    async def sync_one(product: ProductRef) -> SyncResult:
        if not product.sku:
            return SyncResult(
                outcome=SyncOutcome.SKIPPED,
                status=ResultStatus.WARNING,
                message="No SKU found on first variant",
                title=product.title,
                product_id=product.id,
            )
        return await sync_product(
            ExistingProduct(id=product.id, title=product.title), product.sku, pipeline, engine
        )

    return await _run_batch(
        db, log, products, sync_one,
        label=lambda p: p.title or p.id,
        concurrency=concurrency, item_delay=item_delay, sleep=sleep,
    )


async def run_bulk_import(
    skus: List[str],
    pipeline: PriceFetchPipeline,
    engine: ReconciliationEngine,
    db: SQLiteDatabase,
    triggered_by: TriggerType = TriggerType.MANUAL,
    concurrency: int = 1,
    item_delay: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SyncLog:
    """Import each SKU as a new product, skipping ones already in the store."""
    unique_skus = list(dict.fromkeys(s.strip() for s in skus if s and s.strip()))
    log = await db.create_log(RunKind.IMPORT, triggered_by)

    async def import_one(sku: str) -> SyncResult:
        return await import_product(sku, pipeline, engine)

    return await _run_batch(
        db, log, unique_skus, import_one,
        label=lambda sku: sku,
        concurrency=concurrency, item_delay=item_delay, sleep=sleep,
    )


async def _run_batch(
    db: SQLiteDatabase,
    log: SyncLog,
    items: List[T],
    worker: Callable[[T], Awaitable[SyncResult]],
    label: Callable[[T], str],
    concurrency: int,
    item_delay: float,
    sleep: Callable[[float], Awaitable[None]],
) -> SyncLog:
    """Run ``worker`` over ``items`` through a paced pool, recording counts in ``log``."""
    await db.update_log(log.id, items_total=len(items))
    logger.info(f"Starting {log.kind.value} run {log.id} for {len(items)} items")

    async def run_item(item: T) -> SyncResult:
        await jitter(0, ITEM_JITTER, sleep=sleep)
        try:
            result = await worker(item)
        except Exception as e:
            logger.exception(f"Unexpected error processing '{label(item)}'")
            result = SyncResult(
                outcome=SyncOutcome.FAILED,
                status=ResultStatus.ERROR,
                message=f"Unexpected error: {e}",
            )
        logger.info(f"[{label(item)}] {result.outcome.value}: {result.message}")
        return result

    cooldown = (item_delay, item_delay) if item_delay > 0 else None
    pool = BoundedPool(concurrency, cooldown=cooldown, sleep=sleep)
    results = await pool.map(run_item, items)

    counts = {outcome: 0 for outcome in SyncOutcome}
    for result in results:
        counts[result.outcome] += 1

    failures = [
        f"{label(item)}: {result.message}"
        for item, result in zip(items, results)
        if result.outcome == SyncOutcome.FAILED
    ]

    failed = counts[SyncOutcome.FAILED]
    status = LogStatus.FAILED if items and failed == len(items) else LogStatus.SUCCESS

    finished = await db.update_log(
        log.id,
        status=status,
        finished_at=datetime.utcnow(),
        items_created=counts[SyncOutcome.CREATED],
        items_updated=counts[SyncOutcome.UPDATED],
        items_skipped=counts[SyncOutcome.SKIPPED],
        items_failed=failed,
        error_message=f"{failed} of {len(items)} items failed" if failed else None,
        error_details="\n".join(failures) if failures else None,
    )

    logger.info(
        f"Run {log.id} completed: {counts[SyncOutcome.CREATED]} created, "
        f"{counts[SyncOutcome.UPDATED]} updated, {counts[SyncOutcome.SKIPPED]} skipped, "
        f"{failed} failed"
    )
    return finished
