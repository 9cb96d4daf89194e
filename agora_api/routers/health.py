"""Health check endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

from agora_api import __version__
from agora_api.config.env import get_agora_env

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    env: str


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness probe. Does not call Supabase."""
    return HealthResponse(status="ok", version=__version__, env=get_agora_env())
