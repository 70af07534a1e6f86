"""Change history endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_app_settings, get_store
from app.core.config import Settings
from app.core.rate_limit import RateLimit, clamp_query_limit
from app.schemas.responses import DataChangeCreate, DataChangeResponse
from app.services.store import SyncStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/data-changes", tags=["data-changes"])


@router.get("", response_model=list[DataChangeResponse], dependencies=[Depends(RateLimit("read"))])
async def list_changes(
    limit: str | None = None,
    store: SyncStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Most recent changes first.

    `limit` is taken as given by the client and bounded here rather than
    validated, so junk falls back to the default page size.
    """
    bounded = clamp_query_limit(limit, settings.default_query_limit, settings.max_query_limit)
    try:
        return await store.list_changes(bounded)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch data changes: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch data changes")


@router.get(
    "/database/{database_id}",
    response_model=list[DataChangeResponse],
    dependencies=[Depends(RateLimit("read"))],
)
async def list_changes_for_database(database_id: str, store: SyncStore = Depends(get_store)):
    try:
        return await store.list_changes_by_database(database_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch data changes for {database_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch data changes")


@router.post(
    "",
    response_model=DataChangeResponse,
    status_code=201,
    dependencies=[Depends(RateLimit("write"))],
)
async def create_change(body: DataChangeCreate, store: SyncStore = Depends(get_store)):
    try:
        return await store.create_change(body.model_dump())
    except SQLAlchemyError as e:
        logger.error(f"Failed to create data change: {e}")
        raise HTTPException(status_code=500, detail="Failed to create data change")
