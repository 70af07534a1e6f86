"""Dependencies handing app-wide services to route handlers."""

from fastapi import Request

from app.core.config import Settings
from app.services.notion import NotionClient
from app.services.scheduler import AutoSyncScheduler
from app.services.simulator import SyncSimulator
from app.services.store import SyncStore


def get_store(request: Request) -> SyncStore:
    return request.app.state.store


def get_simulator(request: Request) -> SyncSimulator:
    return request.app.state.simulator


def get_auto_sync(request: Request) -> AutoSyncScheduler:
    return request.app.state.auto_sync


def get_notion_client(request: Request) -> NotionClient:
    return request.app.state.notion


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
