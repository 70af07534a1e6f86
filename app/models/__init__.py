# Database models
from app.models.entities import (
    ExternalDatabase,
    DataChange,
    SyncSettings,
)
from app.models.sync_operation import SyncOperation

__all__ = [
    "ExternalDatabase",
    "DataChange",
    "SyncSettings",
    "SyncOperation",
]
