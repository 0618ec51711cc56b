"""
SQLite database implementation.
Simple and direct - no abstraction layers.
"""

import aiosqlite
from datetime import datetime
from typing import List, Optional
import os

from .models import (
    SyncLog, LogStatus, TriggerType, RunKind, MarketplaceCredential
)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp, dropping timezone info."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None)
    return parsed


class SQLiteDatabase:
    """SQLite database for run history and marketplace credentials."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Create database tables."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS sync_logs (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL DEFAULT 'sync',
                started_at TEXT NOT NULL,
                finished_at TEXT,
                status TEXT NOT NULL DEFAULT 'running',
                triggered_by TEXT NOT NULL,
                items_total INTEGER NOT NULL DEFAULT 0,
                items_created INTEGER NOT NULL DEFAULT 0,
                items_updated INTEGER NOT NULL DEFAULT 0,
                items_skipped INTEGER NOT NULL DEFAULT 0,
                items_failed INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                error_details TEXT
            );

            CREATE TABLE IF NOT EXISTS marketplace_credentials (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                access_token TEXT NOT NULL,
                refresh_token TEXT,
                expires_in INTEGER,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_sync_logs_started_at ON sync_logs(started_at DESC);
            CREATE INDEX IF NOT EXISTS idx_sync_logs_kind ON sync_logs(kind);
        """)
        await conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # ===== Helper Methods =====

    def _row_to_log(self, row: aiosqlite.Row) -> SyncLog:
        """Convert a database row to a SyncLog model."""
        return SyncLog(
            id=row["id"],
            kind=RunKind(row["kind"]),
            started_at=_parse_datetime(row["started_at"]),
            finished_at=_parse_datetime(row["finished_at"]),
            status=LogStatus(row["status"]),
            triggered_by=TriggerType(row["triggered_by"]),
            items_total=row["items_total"],
            items_created=row["items_created"],
            items_updated=row["items_updated"],
            items_skipped=row["items_skipped"],
            items_failed=row["items_failed"],
            error_message=row["error_message"],
            error_details=row["error_details"]
        )

    # ===== Log Operations =====

    async def get_logs(
        self,
        kind: Optional[RunKind] = None,
        status: Optional[LogStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[SyncLog]:
        conn = await self._get_connection()

        query = "SELECT * FROM sync_logs WHERE 1=1"
        params = []

        if kind:
            query += " AND kind = ?"
            params.append(kind.value)

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY started_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_log(row) for row in rows]

    async def get_log(self, log_id: str) -> Optional[SyncLog]:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM sync_logs WHERE id = ?", (log_id,))
        row = await cursor.fetchone()
        return self._row_to_log(row) if row else None

    async def create_log(
        self,
        kind: RunKind,
        triggered_by: TriggerType,
        items_total: int = 0
    ) -> SyncLog:
        log = SyncLog(kind=kind, triggered_by=triggered_by, items_total=items_total)

        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT INTO sync_logs (id, kind, started_at, finished_at, status, triggered_by,
                                  items_total, items_created, items_updated, items_skipped,
                                  items_failed, error_message, error_details)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                log.id, log.kind.value, log.started_at.isoformat(), None,
                log.status.value, log.triggered_by.value, log.items_total,
                0, 0, 0, 0, None, None
            )
        )
        await conn.commit()
        return log

    async def update_log(self, log_id: str, **kwargs) -> Optional[SyncLog]:
        if not kwargs:
            return await self.get_log(log_id)

        updates = []
        values = []

        for key, value in kwargs.items():
            updates.append(f"{key} = ?")
            if isinstance(value, datetime):
                values.append(value.isoformat())
            elif isinstance(value, (LogStatus, RunKind, TriggerType)):
                values.append(value.value)
            else:
                values.append(value)

        values.append(log_id)

        conn = await self._get_connection()
        await conn.execute(f"UPDATE sync_logs SET {', '.join(updates)} WHERE id = ?", values)
        await conn.commit()

        return await self.get_log(log_id)

    async def fail_running_logs(self, reason: str) -> int:
        """Close out runs left 'running' by a previous process."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "UPDATE sync_logs SET status = ?, finished_at = ?, error_message = ? WHERE status = ?",
            (LogStatus.FAILED.value, datetime.utcnow().isoformat(), reason, LogStatus.RUNNING.value)
        )
        await conn.commit()
        return cursor.rowcount

    # ===== Marketplace Credential Operations =====

    async def get_marketplace_credential(self) -> Optional[MarketplaceCredential]:
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM marketplace_credentials WHERE id = 1")
        row = await cursor.fetchone()
        if not row:
            return None
        return MarketplaceCredential(
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_in=row["expires_in"],
            updated_at=_parse_datetime(row["updated_at"])
        )

    async def save_marketplace_credential(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in: Optional[int] = None
    ) -> MarketplaceCredential:
        credential = MarketplaceCredential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in
        )

        conn = await self._get_connection()
        await conn.execute(
            """
            INSERT INTO marketplace_credentials (id, access_token, refresh_token, expires_in, updated_at)
            VALUES (1, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                access_token = excluded.access_token,
                refresh_token = excluded.refresh_token,
                expires_in = excluded.expires_in,
                updated_at = excluded.updated_at
            """,
            (
                credential.access_token,
                credential.refresh_token,
                credential.expires_in,
                credential.updated_at.isoformat()
            )
        )
        await conn.commit()
        return credential
