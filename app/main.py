import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from app.core.config import Settings, get_settings
from app.core.database import build_engine
from app.core.rate_limit import SlidingWindowRateLimiter
from app.api import auth, config, data_changes, databases, settings as sync_settings, sync, sync_operations
from app.services.notion import NotionClient
from app.services.scheduler import AutoSyncScheduler
from app.services.seed import seed_sample_data
from app.services.simulator import SyncSimulator
from app.services.store import SyncStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    store: SyncStore = app.state.store
    current = await store.init()
    if app.state.settings.seed_sample_data:
        await seed_sample_data(store)
    app.state.auto_sync.start(current.auto_sync, current.sync_interval)
    yield
    # Shutdown
    app.state.auto_sync.stop()
    await app.state.simulator.shutdown()
    await store.close()


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"message": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse({"message": "Invalid request data"}, status_code=400)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"message": "Internal server error"}, status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app and the services it hands to route handlers."""
    settings = settings or get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)

    app = FastAPI(
        title="Content Sync Dashboard",
        description="Mirrors Notion workspace databases into a local store",
        version=config.VERSION,
        lifespan=lifespan,
    )

    store = SyncStore.from_engine(build_engine(settings.db_path, echo=settings.debug))
    simulator = SyncSimulator(
        store,
        completion_delay=settings.sync_completion_delay,
        timeout=settings.sync_timeout,
        cleanup_delay=settings.sync_cleanup_delay,
        total_records=settings.sync_total_records,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.simulator = simulator
    app.state.auto_sync = AutoSyncScheduler(simulator)
    app.state.rate_limiter = SlidingWindowRateLimiter.from_settings(settings)
    app.state.notion = NotionClient(
        settings.notion_client_id,
        settings.notion_client_secret,
        settings.notion_redirect_uri,
        api_url=settings.notion_api_url,
        notion_version=settings.notion_version,
    )

    app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    app.include_router(config.router)
    app.include_router(databases.router)
    app.include_router(sync_operations.router)
    app.include_router(data_changes.router)
    app.include_router(sync_settings.router)
    app.include_router(sync.router)
    app.include_router(auth.router)

    return app


# Module-level app instance for uvicorn
app = create_app()
