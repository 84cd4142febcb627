"""
Admin API Routes

Read-only operational views:
- Queue depth per state
- Recent logs, errors and log statistics from the in-memory buffer
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from testgen.jobs.models import QueueName
from testgen.jobs.store import JobStore
from testgen.routes.jobs import get_store
from testgen.security import require_admin
from testgen.utils.logging import LogLevel, get_log_buffer


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[require_admin])


# ===== Queues =====

@router.get("/queues")
async def get_queue_stats(store: JobStore = Depends(get_store)):
    """Live job counts per state for each queue."""
    return {
        "backend": store.backend_name,
        "queues": {
            queue_name.value: await store.queue_counts(queue_name)
            for queue_name in QueueName
        }
    }


# ===== Logs =====

@router.get("/logs")
async def get_logs(
    limit: int = Query(100, ge=1, le=500),
    level: Optional[str] = Query(None, description="Filter by level (debug, info, warning, error, critical)"),
    source: Optional[str] = Query(None, description="Filter by source"),
    job_id: Optional[str] = Query(None, description="Only entries logged for this job")
):
    """Get recent log entries from the in-memory buffer."""
    log_buffer = get_log_buffer()

    level_filter = None
    if level:
        try:
            level_filter = LogLevel(level.lower())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid log level: {level}")

    return {
        "logs": log_buffer.get_recent(limit=limit, level=level_filter, source=source, job_id=job_id),
        "stats": log_buffer.get_stats()
    }


@router.get("/logs/errors")
async def get_error_logs(limit: int = Query(50, ge=1, le=200)):
    """Get recent error and critical log entries."""
    return {"errors": get_log_buffer().get_errors(limit=limit)}
