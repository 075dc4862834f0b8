"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rental_invoicing import __version__
from rental_invoicing.api.routes import (
    customers_router,
    employees_router,
    equipment_router,
    health_router,
    invoices_router,
    scanner_router,
    templates_router,
)
from rental_invoicing.config import Settings, get_settings
from rental_invoicing.database import dispose_db, init_db
from rental_invoicing.rendering.html import InvoiceHtmlRenderer
from rental_invoicing.rendering.pdf import PdfRenderer, PdfRenderingError
from rental_invoicing.scanner.vision import ScanExtractionError, VisionExtractor
from rental_invoicing.services.errors import (
    ConflictError,
    InvoiceNumberExhaustedError,
    InvoiceValidationError,
    NotFoundError,
    ServiceError,
)
from rental_invoicing.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[ServiceError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvoiceValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvoiceNumberExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: ServiceError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app(
    settings: Settings | None = None,
    vision_extractor: VisionExtractor | None = None,
    pdf_renderer: PdfRenderer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    vision_extractor defaults to an OpenAI extractor built on first use when
    OPENAI_API_KEY is set. Without a pdf_renderer the PDF endpoint answers 503.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Rental Invoicing API",
        description="Equipment rental invoicing with commissions and slip scanning",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.vision_extractor = vision_extractor
    app.state.pdf_renderer = pdf_renderer
    app.state.html_renderer = InvoiceHtmlRenderer()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": exc.message, "code": exc.code, "context": exc.context},
        )

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": str(exc),
                "code": "INVALID_TRANSITION",
                "context": {"from_status": exc.from_status, "to_status": exc.to_status},
            },
        )

    @app.exception_handler(ScanExtractionError)
    async def scan_error_handler(request: Request, exc: ScanExtractionError) -> JSONResponse:
        logger.warning("Invoice scan failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "code": "SCAN_FAILED"},
        )

    @app.exception_handler(PdfRenderingError)
    async def pdf_error_handler(request: Request, exc: PdfRenderingError) -> JSONResponse:
        logger.error("PDF rendering failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "code": "PDF_FAILED"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(equipment_router, prefix="/api/v1")
    app.include_router(customers_router, prefix="/api/v1")
    app.include_router(employees_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(scanner_router, prefix="/api/v1")
    app.include_router(templates_router, prefix="/api/v1")

    return app
