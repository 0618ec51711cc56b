"""
Tests for background run bookkeeping in the sync routes.
"""

import asyncio

import pytest

from sneaker_sync.db import RunKind, TriggerType
from sneaker_sync.routes import sync as sync_routes
from sneaker_sync.routes.sync import claim_run, start_background


@pytest.fixture
def routes_db(db, monkeypatch):
    monkeypatch.setattr(sync_routes, "get_db", lambda: db)
    monkeypatch.setattr(sync_routes, "_active_runs", set())
    return db


class TestClaimRun:
    """Tests for claim_run and start_background."""

    @pytest.mark.asyncio
    async def test_second_claim_refused_before_log_row_exists(self, routes_db):
        assert await claim_run(RunKind.SYNC)
        assert not await claim_run(RunKind.SYNC)
        assert await claim_run(RunKind.IMPORT)

    @pytest.mark.asyncio
    async def test_claim_released_when_task_finishes(self, routes_db):
        release = asyncio.Event()
        assert await claim_run(RunKind.SYNC)

        task = start_background(release.wait(), kind=RunKind.SYNC)
        assert not await claim_run(RunKind.SYNC)

        release.set()
        await task
        await asyncio.sleep(0)

        assert await claim_run(RunKind.SYNC)

    @pytest.mark.asyncio
    async def test_running_log_row_blocks_claim(self, routes_db):
        await routes_db.create_log(RunKind.IMPORT, TriggerType.SCHEDULER)

        assert not await claim_run(RunKind.IMPORT)
        assert RunKind.IMPORT not in sync_routes._active_runs
