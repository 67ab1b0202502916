"""FastAPI dependencies for injection."""
from fastapi import Request

from core.auth import get_current_user
from core.config import get_settings
from db.session import get_async_session
from services.summary_service import SummaryPipeline


def get_summary_pipeline(request: Request) -> SummaryPipeline:
    """Process-wide summary pipeline built in the application lifespan."""
    return request.app.state.summary_pipeline


__all__ = [
    "get_async_session",
    "get_current_user",
    "get_settings",
    "get_summary_pipeline",
]
