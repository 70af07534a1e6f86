"""Sync operation history endpoints."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_store
from app.core.rate_limit import RateLimit
from app.schemas.responses import SyncOperationCreate, SyncOperationResponse, SyncOperationUpdate
from app.services.store import SyncStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync-operations", tags=["sync-operations"])


@router.get("", response_model=list[SyncOperationResponse], dependencies=[Depends(RateLimit("read"))])
async def list_operations(store: SyncStore = Depends(get_store)):
    try:
        return await store.list_operations()
    except SQLAlchemyError as e:
        logger.error(f"Failed to fetch sync operations: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch sync operations")


@router.post(
    "",
    response_model=SyncOperationResponse,
    status_code=201,
    dependencies=[Depends(RateLimit("write"))],
)
async def create_operation(body: SyncOperationCreate, store: SyncStore = Depends(get_store)):
    """Record an operation directly, without running it."""
    try:
        return await store.create_operation(body.model_dump())
    except SQLAlchemyError as e:
        logger.error(f"Failed to create sync operation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create sync operation")


@router.patch(
    "/{operation_id}",
    response_model=SyncOperationResponse,
    dependencies=[Depends(RateLimit("write"))],
)
async def update_operation(
    operation_id: str,
    body: SyncOperationUpdate,
    store: SyncStore = Depends(get_store),
):
    """
    Partially update an operation.

    Completed and failed operations are immutable, and status only moves
    forward (pending, running, then completed or failed). Either violation
    is rejected with 409.
    """
    changes = body.changes()
    try:
        existing = await store.get_operation(operation_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Sync operation not found")

        if existing.is_terminal and changes:
            raise HTTPException(
                status_code=409,
                detail=f"Sync operation already {existing.status}",
            )

        if not changes:
            return existing

        new_status = changes.get("status")
        if new_status is not None and not existing.can_move_to(new_status):
            raise HTTPException(
                status_code=409,
                detail=f"Sync operation cannot move from {existing.status} to {new_status}",
            )

        # Conditional on the status just read
        operation = await store.transition_operation(
            operation_id, changes, from_status=existing.status
        )
        if operation is None:
            raise HTTPException(status_code=409, detail="Sync operation changed concurrently")
    except SQLAlchemyError as e:
        logger.error(f"Failed to update sync operation {operation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update sync operation")

    return operation
