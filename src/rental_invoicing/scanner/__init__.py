"""Rental slip scanning: AI vision or OCR text into catalog-resolved drafts."""

from rental_invoicing.scanner.ocr_text import parse_ocr_text
from rental_invoicing.scanner.schemas import (
    ExtractedEquipmentLine,
    ExtractedInvoiceDraft,
    MatchConfidence,
    PriceSource,
    ResolvedEquipmentLine,
    ResolvedInvoiceDraft,
)
from rental_invoicing.scanner.service import InvoiceScanner, resolve_draft
from rental_invoicing.scanner.vision import (
    OpenAIVisionExtractor,
    ScanExtractionError,
    VisionExtractor,
    parse_model_output,
)

__all__ = [
    "ExtractedEquipmentLine",
    "ExtractedInvoiceDraft",
    "InvoiceScanner",
    "MatchConfidence",
    "OpenAIVisionExtractor",
    "PriceSource",
    "ResolvedEquipmentLine",
    "ResolvedInvoiceDraft",
    "ScanExtractionError",
    "VisionExtractor",
    "parse_model_output",
    "parse_ocr_text",
    "resolve_draft",
]
