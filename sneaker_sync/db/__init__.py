"""
Database package - SQLite only.
"""

from .models import (
    SyncLog, LogStatus, TriggerType, RunKind, MarketplaceCredential, generate_uuid
)
from .sqlite import SQLiteDatabase

__all__ = [
    "SQLiteDatabase",
    "SyncLog",
    "LogStatus",
    "TriggerType",
    "RunKind",
    "MarketplaceCredential",
    "generate_uuid",
]
