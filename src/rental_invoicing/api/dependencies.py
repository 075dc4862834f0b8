"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.config import Settings
from rental_invoicing.database import init_db
from rental_invoicing.rendering.html import InvoiceHtmlRenderer
from rental_invoicing.rendering.pdf import PdfRenderer
from rental_invoicing.scanner.vision import OpenAIVisionExtractor, VisionExtractor


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Routes commit their own writes."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_html_renderer(request: Request) -> InvoiceHtmlRenderer:
    return request.app.state.html_renderer


def get_vision_extractor(request: Request) -> VisionExtractor:
    """The configured extractor, built lazily from OPENAI_API_KEY.

    503 when no extractor was injected and no API key is set.
    """
    extractor = request.app.state.vision_extractor
    if extractor is not None:
        return extractor

    settings: Settings = request.app.state.settings
    if not settings.scanner_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Invoice scanning is not configured (OPENAI_API_KEY is not set)",
        )
    extractor = OpenAIVisionExtractor(
        api_key=settings.openai_api_key,
        model=settings.openai_vision_model,
    )
    request.app.state.vision_extractor = extractor
    return extractor


def get_pdf_renderer(request: Request) -> PdfRenderer:
    renderer = request.app.state.pdf_renderer
    if renderer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PDF rendering is not configured",
        )
    return renderer


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
HtmlRenderer = Annotated[InvoiceHtmlRenderer, Depends(get_html_renderer)]
Extractor = Annotated[VisionExtractor, Depends(get_vision_extractor)]
PdfRendererDep = Annotated[PdfRenderer, Depends(get_pdf_renderer)]
