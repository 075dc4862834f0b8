"""PDF rendering hand-off."""

from __future__ import annotations

from typing import Protocol


class PdfRenderingError(Exception):
    """Raised by a PdfRenderer that could not produce a document."""


class PdfRenderer(Protocol):
    """Converts finished invoice HTML into PDF bytes (A4, backgrounds printed)."""

    def render(self, html: str) -> bytes:
        ...


def pdf_filename(invoice_number: str) -> str:
    return f"invoice-{invoice_number}.pdf"
