"""External database registration endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.api.deps import get_store
from app.core.rate_limit import RateLimit
from app.schemas.responses import DatabaseCreate, DatabaseResponse, DatabaseUpdate
from app.services.store import SyncStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/databases", tags=["databases"])

NOT_FOUND = "Database not found"


@router.get("", response_model=list[DatabaseResponse], dependencies=[Depends(RateLimit("read"))])
async def list_databases(store: SyncStore = Depends(get_store)):
    """List registered databases in registration order."""
    try:
        return await store.list_databases()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch databases: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch databases")


@router.get("/{database_id}", response_model=DatabaseResponse, dependencies=[Depends(RateLimit("read"))])
async def get_database(database_id: str, store: SyncStore = Depends(get_store)):
    try:
        database = await store.get_database(database_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch database {database_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch database")

    if database is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return database


@router.post(
    "",
    response_model=DatabaseResponse,
    status_code=201,
    dependencies=[Depends(RateLimit("write"))],
)
async def create_database(body: DatabaseCreate, store: SyncStore = Depends(get_store)):
    """Register a database. The external id must not already be registered."""
    try:
        return await store.create_database(body.model_dump())
    except IntegrityError:
        raise HTTPException(status_code=400, detail="Invalid database data")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database: {e}")
        raise HTTPException(status_code=500, detail="Failed to create database")


@router.patch("/{database_id}", response_model=DatabaseResponse, dependencies=[Depends(RateLimit("write"))])
async def update_database(
    database_id: str,
    body: DatabaseUpdate,
    store: SyncStore = Depends(get_store),
):
    try:
        database = await store.update_database(database_id, body.changes())
    except IntegrityError:
        raise HTTPException(status_code=400, detail="Invalid database data")
    except SQLAlchemyError as e:
        logger.error(f"Failed to update database {database_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update database")

    if database is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return database


@router.delete("/{database_id}", status_code=204, dependencies=[Depends(RateLimit("write"))])
async def delete_database(database_id: str, store: SyncStore = Depends(get_store)):
    try:
        deleted = await store.delete_database(database_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to delete database {database_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete database")

    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return Response(status_code=204)
