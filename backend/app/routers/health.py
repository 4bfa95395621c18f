"""
Health-check endpoint. No authentication required.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.connection import get_db_session
from app.strategies import GOOGLE_STRATEGY

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    database_available: bool
    google_enabled: bool


@router.get("/api/health", response_model=HealthResponse)
def health_check(request: Request, db: Session = Depends(get_db_session)) -> HealthResponse:
    """
    Return service health: database reachability and enabled strategies.
    """
    database_available = True
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        database_available = False

    authenticator = getattr(request.app.state, "authenticator", None)
    google_enabled = bool(authenticator and authenticator.has(GOOGLE_STRATEGY))

    return HealthResponse(
        status="ok" if database_available else "degraded",
        database_available=database_available,
        google_enabled=google_enabled,
    )
