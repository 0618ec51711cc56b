"""
Product import routes: fetch a snapshot, create from a snapshot, bulk import.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import List

from ..config import settings
from ..db import RunKind, TriggerType
from ..dependencies import (
    StorefrontNotConfigured,
    build_engine,
    get_db,
    get_pipeline,
    open_storefront,
    require_auth,
)
from ..processor import FailureKind, FetchFailure, ProductPriceSnapshot, run_bulk_import
from .sync import claim_run, start_background

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", dependencies=[Depends(require_auth)])

FAILURE_STATUS_CODES = {
    FailureKind.UNAUTHORIZED: 401,
    FailureKind.NOT_FOUND: 404,
    FailureKind.UPSTREAM_ERROR: 502,
    FailureKind.VALIDATION_ERROR: 400,
    FailureKind.INTERNAL_ERROR: 500,
}


class FetchRequest(BaseModel):
    sku: str = ""


class CreateRequest(BaseModel):
    snapshot: ProductPriceSnapshot


class BulkImportRequest(BaseModel):
    skus: List[str]


def failure_response(failure: FetchFailure) -> JSONResponse:
    """JSON error body for a failed price fetch."""
    body = {"status": "error", "kind": failure.kind.value, "message": failure.detail}
    if failure.action_hint:
        body["action"] = failure.action_hint
    return JSONResponse(body, status_code=FAILURE_STATUS_CODES[failure.kind])


async def bulk_import_job(skus: List[str], triggered_by: TriggerType) -> None:
    try:
        async with open_storefront() as gateway:
            await run_bulk_import(
                skus,
                get_pipeline(),
                build_engine(gateway),
                get_db(),
                triggered_by=triggered_by,
                concurrency=settings.bulk_concurrency,
                item_delay=settings.bulk_item_delay,
            )
    except StorefrontNotConfigured as e:
        logger.error(f"Bulk import not started: {e}")
    except Exception:
        logger.exception("Bulk import crashed")


@router.post("/fetch")
async def fetch_snapshot(body: FetchRequest):
    """Look up marketplace prices for one SKU without touching the store."""
    result = await get_pipeline().fetch(body.sku)
    if isinstance(result, FetchFailure):
        return failure_response(result)
    return {"status": "success", "snapshot": result.model_dump(mode="json")}


@router.post("/create")
async def create_from_snapshot(body: CreateRequest):
    """Import a previously fetched snapshot as a new product."""
    try:
        async with open_storefront() as gateway:
            result = await build_engine(gateway).reconcile(None, body.snapshot)
    except StorefrontNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))

    return result.to_dict()


@router.post("")
async def bulk_import(body: BulkImportRequest):
    """Import a list of SKUs in the background."""
    skus = [s.strip() for s in body.skus if s and s.strip()]
    if not skus:
        raise HTTPException(status_code=400, detail="No SKUs given")

    if not await claim_run(RunKind.IMPORT):
        raise HTTPException(status_code=409, detail="An import run is already in progress")

    start_background(bulk_import_job(skus, TriggerType.MANUAL), kind=RunKind.IMPORT)

    return {"success": True, "message": f"Import started for {len(skus)} SKUs"}
