"""Sync trigger and dashboard stats endpoints."""

import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_simulator, get_store
from app.core.rate_limit import RateLimit
from app.models.entities import utcnow
from app.schemas.responses import StatsResponse, SyncNowRequest, SyncOperationResponse
from app.services.simulator import SyncSimulator
from app.services.store import SyncStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sync"])


def format_relative_time(when: datetime, now: datetime | None = None) -> str:
    """Short "how long ago" text for the dashboard."""
    now = now or utcnow()
    minutes = int((now - when).total_seconds() // 60)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    return f"{hours // 24}d ago"


@router.post("/sync/now", response_model=SyncOperationResponse, dependencies=[Depends(RateLimit("sync"))])
async def sync_now(
    body: SyncNowRequest | None = None,
    simulator: SyncSimulator = Depends(get_simulator),
):
    """
    Start a sync and return the running operation immediately.

    The operation finishes in the background; poll /api/sync-operations
    for its outcome.
    """
    body = body or SyncNowRequest()
    try:
        return await simulator.trigger(body.database_id, body.operation)
    except SQLAlchemyError as e:
        logger.error(f"Failed to start sync operation: {e}")
        raise HTTPException(status_code=500, detail="Failed to start sync operation")


@router.get("/stats", response_model=StatsResponse, dependencies=[Depends(RateLimit("read"))])
async def get_stats(store: SyncStore = Depends(get_store)):
    """Totals across databases, pending changes, last sync and cache size."""
    try:
        databases = await store.list_databases()
        changes = await store.list_changes()
        settings = await store.get_settings()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch stats")

    synced = [db.last_sync for db in databases if db.last_sync is not None]
    last_sync = max(synced) if synced else None

    return StatsResponse(
        total_records=sum(db.record_count or 0 for db in databases),
        last_sync=format_relative_time(last_sync) if last_sync else "Never",
        pending_sync=sum(1 for c in changes if c.status == "pending"),
        cache_size=f"{settings.cache_size:.1f} MB",
    )
