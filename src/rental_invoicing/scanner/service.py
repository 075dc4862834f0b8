"""Invoice scanner: extraction followed by catalog resolution."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.calculators.numeric import ZERO, safe_parse_number
from rental_invoicing.matching import find_closest_equipment
from rental_invoicing.models import Equipment
from rental_invoicing.scanner.ocr_text import parse_ocr_text
from rental_invoicing.scanner.schemas import (
    ExtractedInvoiceDraft,
    MatchConfidence,
    PriceSource,
    ResolvedEquipmentLine,
    ResolvedInvoiceDraft,
)
from rental_invoicing.scanner.vision import ScanExtractionError, VisionExtractor
from rental_invoicing.services.catalog_service import load_active_catalog

logger = logging.getLogger(__name__)


def resolve_draft(
    draft: ExtractedInvoiceDraft, catalog: Sequence[Equipment]
) -> ResolvedInvoiceDraft:
    """Match every extracted line against the catalog.

    Matched lines take the catalog name and daily rate. Unmatched lines keep
    the extracted name with rate 0 for manual review.
    """
    lines: list[ResolvedEquipmentLine] = []
    for item in draft.equipment:
        match = find_closest_equipment(item.equipment_name, catalog)
        if match is not None:
            lines.append(
                ResolvedEquipmentLine(
                    equipment_id=match.equipment_id,
                    equipment_name=match.name,
                    description=match.description or "",
                    daily_rate=safe_parse_number(match.daily_rate),
                    quantity=item.quantity,
                    extracted_name=item.equipment_name,
                    price_source=PriceSource.DATABASE,
                    match_confidence=MatchConfidence.MATCHED,
                )
            )
        else:
            lines.append(
                ResolvedEquipmentLine(
                    equipment_id=None,
                    equipment_name=item.equipment_name,
                    daily_rate=ZERO,
                    quantity=item.quantity,
                    extracted_name=item.equipment_name,
                    price_source=PriceSource.DEFAULT,
                    match_confidence=MatchConfidence.NO_MATCH,
                )
            )

    return ResolvedInvoiceDraft(
        customer_name=draft.customer_name,
        phone_number=draft.phone_number,
        rental_start_date=draft.rental_start_date,
        rental_duration_days=draft.rental_duration_days,
        notes=draft.notes,
        equipment=lines,
    )


class InvoiceScanner:
    """Scans rental slips into resolved invoice drafts."""

    def __init__(self, session: AsyncSession, extractor: VisionExtractor | None = None):
        self.session = session
        self.extractor = extractor

    async def scan_image(self, image: bytes, mime_type: str) -> ResolvedInvoiceDraft:
        """Extract with the vision model, then resolve against the active catalog."""
        if self.extractor is None:
            raise ScanExtractionError("No vision extractor configured")

        raw = await self.extractor.extract(image, mime_type)
        try:
            draft = ExtractedInvoiceDraft.model_validate(raw)
        except ValidationError as e:
            raise ScanExtractionError("Extracted data has an unexpected shape") from e

        resolved = await self.resolve(draft)
        logger.info(
            "Scanned %d bytes: %d equipment lines, %d unmatched",
            len(image),
            len(resolved.equipment),
            resolved.unmatched_count,
        )
        return resolved

    async def parse_text(self, text: str) -> ResolvedInvoiceDraft:
        """Resolve a draft built from OCR text by regex heuristics."""
        return await self.resolve(parse_ocr_text(text))

    async def resolve(self, draft: ExtractedInvoiceDraft) -> ResolvedInvoiceDraft:
        catalog = await load_active_catalog(self.session) if draft.equipment else []
        return resolve_draft(draft, catalog)
