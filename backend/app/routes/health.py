# backend/app/routes/health.py
"""
Health check endpoints for the application.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class HealthCheckResponse(BaseModel):
    status: str
    environment: str
    database: str
    timestamp: datetime
    error: Optional[str] = None


@router.get("/health", response_model=HealthCheckResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthCheckResponse:
    """Service liveness plus a database round trip."""
    response.headers["Cache-Control"] = "no-store"
    now = datetime.now(timezone.utc)
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check database probe failed: {str(e)}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthCheckResponse(
            status="unhealthy",
            environment=settings.environment,
            database="unreachable",
            timestamp=now,
            error=type(e).__name__,
        )
    return HealthCheckResponse(
        status="healthy", environment=settings.environment, database="ok", timestamp=now
    )
