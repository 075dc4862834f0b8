"""Invoice scanner endpoints: slip image or OCR text to a resolved draft."""

from typing import Annotated

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from rental_invoicing.api.dependencies import AppSettings, DbSession, Extractor
from rental_invoicing.api.schemas import ErrorResponse, ParseTextRequest
from rental_invoicing.scanner import InvoiceScanner, ResolvedInvoiceDraft

router = APIRouter(prefix="/invoice-scanner", tags=["invoice-scanner"])

ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})


@router.get("/status")
async def scanner_status(settings: AppSettings) -> dict[str, bool]:
    return {"enabled": settings.scanner_enabled}


@router.post(
    "/scan",
    response_model=ResolvedInvoiceDraft,
    responses={
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def scan_invoice(
    db: DbSession,
    settings: AppSettings,
    extractor: Extractor,
    file: Annotated[UploadFile, File()],
) -> ResolvedInvoiceDraft:
    """Extract customer, dates and equipment from a photo of a rental slip.

    Prices come from the catalog, never from the image. Unmatched lines
    carry rate 0 and match_confidence "no_match" for manual review.
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type '{file.content_type}'",
        )

    image = await file.read(settings.max_upload_bytes + 1)
    if len(image) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.max_upload_bytes} bytes",
        )
    if not image:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Uploaded file is empty",
        )

    return await InvoiceScanner(db, extractor).scan_image(image, file.content_type)


@router.post("/parse-text", response_model=ResolvedInvoiceDraft)
async def parse_text(db: DbSession, payload: ParseTextRequest) -> ResolvedInvoiceDraft:
    """Build a draft from OCR text with regex heuristics (no AI call)."""
    return await InvoiceScanner(db).parse_text(payload.text)
