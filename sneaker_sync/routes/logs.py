"""
Run history routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from typing import Optional

from ..dependencies import get_db, require_auth
from ..db import LogStatus, RunKind, SyncLog

router = APIRouter(prefix="/logs", dependencies=[Depends(require_auth)])

PAGE_SIZE = 25


def _parse_enum(enum_cls, value: Optional[str]):
    if not value or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _log_to_dict(log: SyncLog) -> dict:
    data = log.model_dump(mode="json")
    data["items_processed"] = log.items_processed
    return data


@router.get("")
async def list_logs(
    kind: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1)
):
    """List run logs with filtering."""
    db = get_db()
    offset = (page - 1) * PAGE_SIZE

    logs = await db.get_logs(
        kind=_parse_enum(RunKind, kind),
        status=_parse_enum(LogStatus, status),
        limit=PAGE_SIZE + 1,
        offset=offset
    )

    has_next = len(logs) > PAGE_SIZE
    logs = logs[:PAGE_SIZE]

    return {
        "logs": [_log_to_dict(log) for log in logs],
        "page": page,
        "has_prev": page > 1,
        "has_next": has_next,
    }


@router.get("/{log_id}")
async def view_log(log_id: str):
    """View a single log entry."""
    log = await get_db().get_log(log_id)
    if not log:
        raise HTTPException(status_code=404, detail="Log not found")

    return _log_to_dict(log)


def format_log(log: SyncLog) -> str:
    """Plain-text report of one run."""
    lines = [
        "="*80,
        f"{log.kind.value.upper()} RUN",
        "="*80,
        "",
        f"Log ID:        {log.id}",
        f"Status:        {log.status.value.upper()}",
        f"Triggered By:  {log.triggered_by.value.capitalize()}",
        f"Started:       {log.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Finished:      {log.finished_at.strftime('%Y-%m-%d %H:%M:%S') if log.finished_at else 'N/A'}",
    ]

    if log.finished_at:
        duration = (log.finished_at - log.started_at).total_seconds()
        lines.append(f"Duration:      {duration:.1f} seconds")

    lines.extend([
        "",
        "-"*80,
        "STATISTICS",
        "-"*80,
        "",
        f"Items:         {log.items_total}",
        f"Processed:     {log.items_processed}",
        f"Created:       {log.items_created}",
        f"Updated:       {log.items_updated}",
        f"Skipped:       {log.items_skipped}",
        f"Failed:        {log.items_failed}",
    ])

    if log.error_message:
        lines.extend([
            "",
            "-"*80,
            "ERRORS",
            "-"*80,
            "",
            f"Message: {log.error_message}",
        ])

        if log.error_details:
            lines.extend(["", log.error_details])

    lines.append("")
    lines.append("="*80)
    return "\n".join(lines)


@router.get("/{log_id}/download", response_class=PlainTextResponse)
async def download_log(log_id: str):
    """Download a log entry as a text file."""
    log = await get_db().get_log(log_id)
    if not log:
        raise HTTPException(status_code=404, detail="Log not found")

    filename = f"{log.kind.value}_log_{log.started_at.strftime('%Y%m%d_%H%M%S')}.txt"

    return PlainTextResponse(
        content=format_log(log),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
