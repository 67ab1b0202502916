"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_settings
from core.config import Settings
from core.redis import RedisClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """
    Service health.

    Only the database decides `status`. Redis and the summary keys are
    reported for operators but never degrade it: without Redis the quota is
    counted in-process, and without keys summaries fall back to placeholders.
    """

    status: str
    database: str
    redis: str  # connected | disconnected | disabled
    summaries: str  # configured | not_configured


async def _redis_status(request: Request, settings: Settings) -> str:
    if not settings.redis_enabled:
        return "disabled"
    redis_client: RedisClient | None = getattr(request.app.state, "redis_client", None)
    if redis_client is not None and await redis_client.ping():
        return "connected"
    return "disconnected"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """Check database reachability and report optional integrations."""
    database = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        database=database,
        redis=await _redis_status(request, settings),
        summaries="configured" if settings.groq_api_key else "not_configured",
    )
