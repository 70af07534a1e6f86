"""Entity store - keyed collections for databases, sync operations, changes and settings."""

import asyncio
import logging
from typing import Any, Optional
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.database import build_session_maker, init_db
from app.models.entities import ExternalDatabase, DataChange, SyncSettings, utcnow
from app.models.sync_operation import SyncOperation

logger = logging.getLogger(__name__)

DEFAULT_CHANGES_LIMIT = 50

# Columns the store owns; callers never write them
_PROTECTED_FIELDS = {"pk", "id"}


def _apply_fields(record, fields: dict[str, Any]) -> None:
    """Shallow merge: each provided field replaces the prior value."""
    table = type(record).__table__
    for key, value in fields.items():
        if key in _PROTECTED_FIELDS or key not in table.columns:
            raise ValueError(f"{type(record).__name__} has no updatable field '{key}'")
        setattr(record, key, value)


class SyncStore:
    """
    Async store over a SQLAlchemy session factory.

    Every operation holds one lock for its whole duration, so operations are
    atomic with respect to each other no matter how timers and requests
    interleave on the event loop.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], engine: AsyncEngine | None = None):
        self._session_maker = session_maker
        self._engine = engine
        self._lock = asyncio.Lock()

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> "SyncStore":
        return cls(build_session_maker(engine), engine)

    async def init(self) -> SyncSettings:
        """Create tables and make sure the settings singleton exists."""
        if self._engine is not None:
            await init_db(self._engine)

        async with self._lock, self._session_maker() as session:
            result = await session.execute(select(SyncSettings).order_by(SyncSettings.pk).limit(1))
            settings = result.scalar_one_or_none()
            if settings is None:
                settings = SyncSettings()
                session.add(settings)
                await session.commit()
                logger.info("Created default sync settings")
            return settings

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    # -- generic helpers -------------------------------------------------

    async def _list(self, model) -> list:
        async with self._lock, self._session_maker() as session:
            result = await session.execute(select(model).order_by(model.pk))
            return list(result.scalars().all())

    async def _get(self, model, record_id: str):
        async with self._lock, self._session_maker() as session:
            result = await session.execute(select(model).where(model.id == record_id))
            return result.scalar_one_or_none()

    async def _create(self, model, fields: dict[str, Any]):
        async with self._lock, self._session_maker() as session:
            record = model()
            _apply_fields(record, fields)
            session.add(record)
            await session.commit()
            return record

    async def _update(self, model, record_id: str, fields: dict[str, Any]):
        async with self._lock, self._session_maker() as session:
            result = await session.execute(select(model).where(model.id == record_id))
            record = result.scalar_one_or_none()
            if record is None:
                return None
            _apply_fields(record, fields)
            await session.commit()
            return record

    # -- external databases ----------------------------------------------

    async def list_databases(self) -> list[ExternalDatabase]:
        return await self._list(ExternalDatabase)

    async def get_database(self, database_id: str) -> Optional[ExternalDatabase]:
        return await self._get(ExternalDatabase, database_id)

    async def create_database(self, fields: dict[str, Any]) -> ExternalDatabase:
        # last_sync is only ever set by a completed sync or an explicit update
        fields = {k: v for k, v in fields.items() if k != "last_sync"}
        return await self._create(ExternalDatabase, fields)

    async def update_database(self, database_id: str, fields: dict[str, Any]) -> Optional[ExternalDatabase]:
        return await self._update(ExternalDatabase, database_id, fields)

    async def delete_database(self, database_id: str) -> bool:
        async with self._lock, self._session_maker() as session:
            result = await session.execute(
                delete(ExternalDatabase)
                .where(ExternalDatabase.id == database_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount > 0

    # -- sync operations -------------------------------------------------

    async def list_operations(self) -> list[SyncOperation]:
        return await self._list(SyncOperation)

    async def get_operation(self, operation_id: str) -> Optional[SyncOperation]:
        return await self._get(SyncOperation, operation_id)

    async def create_operation(self, fields: dict[str, Any]) -> SyncOperation:
        fields = dict(fields)
        fields.setdefault("start_time", utcnow())
        return await self._create(SyncOperation, fields)

    async def update_operation(self, operation_id: str, fields: dict[str, Any]) -> Optional[SyncOperation]:
        return await self._update(SyncOperation, operation_id, fields)

    async def transition_operation(
        self,
        operation_id: str,
        fields: dict[str, Any],
        from_status: str = "running",
    ) -> Optional[SyncOperation]:
        """
        Apply `fields` only if the operation is still in `from_status`.

        Returns the updated operation, or None when the operation is missing
        or another transition already moved it on.
        """
        async with self._lock, self._session_maker() as session:
            result = await session.execute(
                update(SyncOperation)
                .where(SyncOperation.id == operation_id, SyncOperation.status == from_status)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                return None
            await session.commit()

            refreshed = await session.execute(
                select(SyncOperation).where(SyncOperation.id == operation_id)
            )
            return refreshed.scalar_one()

    # -- data changes ----------------------------------------------------

    async def list_changes(self, limit: int = DEFAULT_CHANGES_LIMIT) -> list[DataChange]:
        """Most recent changes first; changes without a timestamp sort as oldest."""
        async with self._lock, self._session_maker() as session:
            result = await session.execute(
                select(DataChange)
                .order_by(DataChange.timestamp.desc().nulls_last(), DataChange.pk.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_changes_by_database(self, database_id: str) -> list[DataChange]:
        async with self._lock, self._session_maker() as session:
            result = await session.execute(
                select(DataChange)
                .where(DataChange.database_id == database_id)
                .order_by(DataChange.timestamp.desc().nulls_last(), DataChange.pk.desc())
            )
            return list(result.scalars().all())

    async def create_change(self, fields: dict[str, Any]) -> DataChange:
        fields = dict(fields)
        fields.setdefault("timestamp", utcnow())
        return await self._create(DataChange, fields)

    async def update_change(self, change_id: str, fields: dict[str, Any]) -> Optional[DataChange]:
        return await self._update(DataChange, change_id, fields)

    # -- settings --------------------------------------------------------

    async def get_settings(self) -> SyncSettings:
        async with self._lock, self._session_maker() as session:
            result = await session.execute(select(SyncSettings).order_by(SyncSettings.pk).limit(1))
            return result.scalar_one()

    async def update_settings(self, fields: dict[str, Any]) -> SyncSettings:
        """Merge fields over the singleton. Last writer wins."""
        async with self._lock, self._session_maker() as session:
            result = await session.execute(select(SyncSettings).order_by(SyncSettings.pk).limit(1))
            settings = result.scalar_one()
            _apply_fields(settings, fields)
            await session.commit()
            return settings
