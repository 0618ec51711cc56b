"""
Sync trigger API routes.
"""

import asyncio
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..config import settings
from ..db import LogStatus, RunKind, TriggerType
from ..dependencies import (
    StorefrontNotConfigured,
    build_engine,
    get_db,
    get_pipeline,
    open_storefront,
    require_auth,
)
from ..processor import ExistingProduct, run_bulk_sync, sync_product

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", dependencies=[Depends(require_auth)])

# Strong references so background runs are not garbage collected mid-flight
_background_tasks = set()
# Run kinds reserved by this process until their background task finishes
_active_runs = set()


class SyncProductRequest(BaseModel):
    product_id: str
    sku: str
    title: Optional[str] = None


class SyncResponse(BaseModel):
    message: str
    success: bool


def start_background(coro, kind: Optional[RunKind] = None) -> asyncio.Task:
    """
    Run a coroutine in the background, keeping a reference until done.

    A ``kind`` reserved with claim_run is released when the task finishes.
    """
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    if kind is not None:
        task.add_done_callback(lambda _: _active_runs.discard(kind))
    return task


async def is_running(kind: RunKind) -> bool:
    running = await get_db().get_logs(kind=kind, status=LogStatus.RUNNING, limit=1)
    return bool(running)


async def claim_run(kind: RunKind) -> bool:
    """Reserve ``kind`` for a new background run; False if one is in progress."""
    if kind in _active_runs:
        return False
    _active_runs.add(kind)
    if await is_running(kind):
        _active_runs.discard(kind)
        return False
    return True


async def bulk_sync_job(triggered_by: TriggerType) -> None:
    """Sync every tagged product against the configured shop."""
    try:
        async with open_storefront() as gateway:
            await run_bulk_sync(
                gateway,
                get_pipeline(),
                build_engine(gateway),
                get_db(),
                sync_tag=settings.sync_tag,
                triggered_by=triggered_by,
                concurrency=settings.bulk_concurrency,
                item_delay=settings.bulk_item_delay,
            )
    except StorefrontNotConfigured as e:
        logger.error(f"Bulk sync not started: {e}")
    except Exception:
        logger.exception("Bulk sync crashed")


@router.post("/product")
async def sync_single_product(body: SyncProductRequest):
    """Sync one storefront product with fresh marketplace prices."""
    try:
        async with open_storefront() as gateway:
            result = await sync_product(
                ExistingProduct(id=body.product_id, title=body.title),
                body.sku,
                get_pipeline(),
                build_engine(gateway),
            )
    except StorefrontNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))

    return result.to_dict()


@router.post("/all", response_model=SyncResponse)
async def sync_all_products():
    """Trigger a background sync of every synced product."""
    if not await claim_run(RunKind.SYNC):
        raise HTTPException(status_code=409, detail="A sync run is already in progress")

    start_background(bulk_sync_job(TriggerType.MANUAL), kind=RunKind.SYNC)

    return SyncResponse(message="Sync started for all synced products", success=True)


@router.get("/status")
async def get_sync_status():
    """Report which batch runs are in progress."""
    db = get_db()
    running = await db.get_logs(status=LogStatus.RUNNING, limit=10)

    return {
        "running": bool(running),
        "running_runs": [
            {
                "id": log.id,
                "kind": log.kind.value,
                "started_at": log.started_at.isoformat(),
                "items_total": log.items_total,
            }
            for log in running
        ],
    }
