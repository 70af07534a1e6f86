from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter(prefix="/api", tags=["config"])

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=VERSION)
