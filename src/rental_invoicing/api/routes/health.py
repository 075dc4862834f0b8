"""Service status: database reachability and optional integrations."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from rental_invoicing.api.dependencies import AppSettings, DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    scanner_enabled: bool
    pdf_enabled: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, db: DbSession, settings: AppSettings) -> HealthResponse:
    """Report whether invoices can be stored, scanned and rendered to PDF.

    A failing database makes the service "degraded". A missing scanner key
    or PDF renderer only switches off those endpoints (they answer 503).
    """
    database = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database unreachable during health check", exc_info=True)
        database = "unreachable"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        scanner_enabled=(
            request.app.state.vision_extractor is not None or settings.scanner_enabled
        ),
        pdf_enabled=request.app.state.pdf_renderer is not None,
    )
