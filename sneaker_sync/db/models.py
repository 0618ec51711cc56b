"""
Pydantic models for database entities.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
import uuid


class LogStatus(str, Enum):
    """Status of a run log entry."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class TriggerType(str, Enum):
    """What triggered the run."""
    SCHEDULER = "scheduler"
    MANUAL = "manual"


class RunKind(str, Enum):
    """Which batch operation a run performed."""
    SYNC = "sync"
    IMPORT = "import"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class SyncLog(BaseModel):
    """A log entry for one batch run (bulk sync or bulk import)."""
    id: str = Field(default_factory=generate_uuid)
    kind: RunKind = RunKind.SYNC
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    status: LogStatus = LogStatus.RUNNING
    triggered_by: TriggerType = TriggerType.MANUAL

    # Statistics
    items_total: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_skipped: int = 0
    items_failed: int = 0

    # Error information
    error_message: Optional[str] = None
    error_details: Optional[str] = None  # One "<item>: <message>" line per failure

    @property
    def items_processed(self) -> int:
        return self.items_created + self.items_updated + self.items_skipped + self.items_failed


class MarketplaceCredential(BaseModel):
    """The stored marketplace OAuth token pair (single row)."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)
