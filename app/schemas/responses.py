"""Pydantic request and response models for API endpoints.

Wire format uses camelCase keys; snake_case names are accepted on input too.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SyncDirection = Literal["bidirectional", "pull", "push"]
DatabaseStatus = Literal["connected", "syncing", "error"]
OperationStatus = Literal["pending", "running", "completed", "failed"]
ChangeAction = Literal["created", "updated", "deleted"]
ChangeStatus = Literal["pending", "synced", "failed"]


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Stored timestamps are naive UTC; offset-aware input is converted first."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ApiModel(BaseModel):
    """Response base: camelCase on the wire, built from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiInput(BaseModel):
    """Request base: unknown fields are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class PartialUpdate(ApiInput):
    """Partial update: omitted fields keep their value, given fields replace it."""

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_required(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable_fields:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class MessageResponse(BaseModel):
    message: str


# External databases

class DatabaseCreate(ApiInput):
    external_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    record_count: int = Field(default=0, ge=0)
    sync_direction: SyncDirection = "bidirectional"
    status: DatabaseStatus = "connected"
    is_active: bool = True


class DatabaseUpdate(PartialUpdate):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"last_sync"})

    external_id: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    record_count: int | None = Field(default=None, ge=0)
    last_sync: datetime | None = None
    sync_direction: SyncDirection | None = None
    status: DatabaseStatus | None = None
    is_active: bool | None = None

    @field_validator("last_sync")
    @classmethod
    def normalize_last_sync(cls, value):
        return as_naive_utc(value)


class DatabaseResponse(ApiModel):
    id: str
    external_id: str
    name: str
    record_count: int
    last_sync: datetime | None
    sync_direction: str
    status: str
    is_active: bool


# Sync operations

class SyncOperationCreate(ApiInput):
    database_id: str | None = None
    operation: str = Field(min_length=1)
    status: OperationStatus = "pending"
    records_processed: int = Field(default=0, ge=0)
    total_records: int = Field(default=0, ge=0)
    end_time: datetime | None = None
    error_message: str | None = None

    @field_validator("end_time")
    @classmethod
    def normalize_end_time(cls, value):
        return as_naive_utc(value)


class SyncOperationUpdate(PartialUpdate):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"database_id", "end_time", "error_message"})

    database_id: str | None = None
    operation: str | None = Field(default=None, min_length=1)
    status: OperationStatus | None = None
    records_processed: int | None = Field(default=None, ge=0)
    total_records: int | None = Field(default=None, ge=0)
    end_time: datetime | None = None
    error_message: str | None = None

    @field_validator("end_time")
    @classmethod
    def normalize_end_time(cls, value):
        return as_naive_utc(value)


class SyncOperationResponse(ApiModel):
    id: str
    database_id: str | None
    operation: str
    status: str
    records_processed: int
    total_records: int
    start_time: datetime
    end_time: datetime | None
    error_message: str | None


class SyncNowRequest(ApiInput):
    database_id: str | None = None
    operation: str = Field(default="sync", min_length=1)


# Data changes

class DataChangeCreate(ApiInput):
    database_id: str | None = None
    record_name: str = Field(min_length=1)
    action: ChangeAction
    status: ChangeStatus = "pending"
    record_data: Any = None


class DataChangeResponse(ApiModel):
    id: str
    database_id: str | None
    record_name: str
    action: str
    timestamp: datetime | None
    status: str
    record_data: Any = None


# Settings

class SyncSettingsUpdate(PartialUpdate):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"access_token"})

    auto_sync: bool | None = None
    sync_interval: int | None = Field(default=None, ge=1)
    cache_size: int | None = Field(default=None, ge=0)
    access_token: str | None = None
    is_authenticated: bool | None = None


class SyncSettingsResponse(ApiModel):
    """Settings as exposed to clients. The stored token is never echoed back."""
    id: str
    auto_sync: bool
    sync_interval: int
    cache_size: int
    is_authenticated: bool
    has_access_token: bool

    @classmethod
    def from_record(cls, record) -> "SyncSettingsResponse":
        return cls(
            id=record.id,
            auto_sync=record.auto_sync,
            sync_interval=record.sync_interval,
            cache_size=record.cache_size,
            is_authenticated=record.is_authenticated,
            has_access_token=record.access_token is not None,
        )


# Stats and auth

class StatsResponse(ApiModel):
    total_records: int
    last_sync: str
    pending_sync: int
    cache_size: str


class AuthStatusResponse(ApiModel):
    is_authenticated: bool
    workspace_id: str | None = None


class DisconnectResponse(BaseModel):
    success: bool
