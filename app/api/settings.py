"""Sync settings endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_auto_sync, get_store
from app.core.rate_limit import RateLimit
from app.schemas.responses import SyncSettingsResponse, SyncSettingsUpdate
from app.services.scheduler import AutoSyncScheduler
from app.services.store import SyncStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync-settings", tags=["settings"])


@router.get("", response_model=SyncSettingsResponse, dependencies=[Depends(RateLimit("read"))])
async def get_sync_settings(store: SyncStore = Depends(get_store)):
    try:
        settings = await store.get_settings()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch sync settings: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch sync settings")
    return SyncSettingsResponse.from_record(settings)


@router.patch("", response_model=SyncSettingsResponse, dependencies=[Depends(RateLimit("write"))])
async def update_sync_settings(
    body: SyncSettingsUpdate,
    store: SyncStore = Depends(get_store),
    auto_sync: AutoSyncScheduler = Depends(get_auto_sync),
):
    """Merge the given fields over the current settings and reschedule auto-sync."""
    changes = body.changes()
    try:
        settings = await store.update_settings(changes)
    except SQLAlchemyError as e:
        logger.error(f"Failed to update sync settings: {e}")
        raise HTTPException(status_code=500, detail="Failed to update sync settings")

    if "auto_sync" in changes or "sync_interval" in changes:
        auto_sync.apply(settings.auto_sync, settings.sync_interval)

    return SyncSettingsResponse.from_record(settings)
