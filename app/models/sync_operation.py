"""Sync operation model for tracking sync attempts."""

from sqlalchemy import Column, Integer, String, DateTime, Text

from app.core.database import Base
from app.models.entities import new_id, utcnow

TERMINAL_STATUSES = ("completed", "failed")

# Lifecycle position; a status may only move to an equal or later stage
STATUS_STAGES = {"pending": 0, "running": 1, "completed": 2, "failed": 2}


class SyncOperation(Base):
    """One sync, pull or push attempt."""

    __tablename__ = "sync_operations"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, default=new_id)
    database_id = Column(String, nullable=True, index=True)
    operation = Column(String, nullable=False)  # "sync", "pull", "push"
    status = Column(String, nullable=False, default="pending")  # "pending", "running", "completed", "failed"
    records_processed = Column(Integer, nullable=False, default=0)
    total_records = Column(Integer, nullable=False, default=0)
    start_time = Column(DateTime, nullable=False, default=utcnow)
    end_time = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_move_to(self, status: str) -> bool:
        return STATUS_STAGES[status] >= STATUS_STAGES.get(self.status, 0)
