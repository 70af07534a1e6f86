import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON

from app.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class ExternalDatabase(Base):
    """A database registered on the external content API."""

    __tablename__ = "external_databases"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, default=new_id)
    external_id = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    record_count = Column(Integer, nullable=False, default=0)
    last_sync = Column(DateTime, nullable=True)
    sync_direction = Column(String, nullable=False, default="bidirectional")  # bidirectional, pull, push
    status = Column(String, nullable=False, default="connected")  # connected, syncing, error
    is_active = Column(Boolean, nullable=False, default=True)


class DataChange(Base):
    """Append-only history of record changes surfaced to the UI."""

    __tablename__ = "data_changes"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, default=new_id)
    # No foreign key: dangling database references are accepted
    database_id = Column(String, nullable=True, index=True)
    record_name = Column(String, nullable=False)
    action = Column(String, nullable=False)  # created, updated, deleted
    timestamp = Column(DateTime, nullable=True, default=utcnow, index=True)
    status = Column(String, nullable=False, default="pending")  # pending, synced, failed
    record_data = Column(JSON, nullable=True)


class SyncSettings(Base):
    """Singleton sync configuration row."""

    __tablename__ = "sync_settings"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, default=new_id)
    auto_sync = Column(Boolean, nullable=False, default=True)
    sync_interval = Column(Integer, nullable=False, default=5)  # minutes
    cache_size = Column(Integer, nullable=False, default=0)  # MB
    access_token = Column(String, nullable=True)
    is_authenticated = Column(Boolean, nullable=False, default=False)
