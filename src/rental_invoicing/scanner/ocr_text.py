"""Regex heuristics for turning raw OCR text into a draft.

Lower accuracy than the vision path; used when only text is available.
"""

from __future__ import annotations

import re

from rental_invoicing.scanner.schemas import ExtractedEquipmentLine, ExtractedInvoiceDraft

MAX_EQUIPMENT_LINES = 10
MIN_LINE_LENGTH = 6
MAX_LINE_LENGTH = 99

CUSTOMER_PATTERN = re.compile(r"(?:customer|client|name)[:\s]+([^\n\r]+)", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"(?:phone|tel|mobile)[:\s]*([0-9\-\(\)\s\.]{10,})", re.IGNORECASE)
START_DATE_PATTERN = re.compile(r"(?:start|from|begin)[:\s]*([0-9/\-\.]{8,})", re.IGNORECASE)
QUANTITY_PATTERN = re.compile(r"(\d+)\s*x?\s*(.+)", re.IGNORECASE)
_DIGIT = re.compile(r"\d")


def extract_field(text: str, pattern: re.Pattern[str]) -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def extract_equipment_lines(text: str) -> list[ExtractedEquipmentLine]:
    """Lines containing a digit, 6-99 chars long, read as "<qty> x <name>"."""
    items: list[ExtractedEquipmentLine] = []
    for line in text.split("\n"):
        if not _DIGIT.search(line) or not MIN_LINE_LENGTH <= len(line) <= MAX_LINE_LENGTH:
            continue
        match = QUANTITY_PATTERN.search(line)
        if match:
            items.append(
                ExtractedEquipmentLine(
                    equipment_name=match.group(2).strip(),
                    quantity=int(match.group(1)) or 1,
                )
            )
        else:
            items.append(ExtractedEquipmentLine(equipment_name=line.strip(), quantity=1))
        if len(items) == MAX_EQUIPMENT_LINES:
            break
    return items


def parse_ocr_text(text: str) -> ExtractedInvoiceDraft:
    """Build a draft from OCR text. Missing fields stay at their defaults."""
    return ExtractedInvoiceDraft(
        customer_name=extract_field(text, CUSTOMER_PATTERN),
        phone_number=extract_field(text, PHONE_PATTERN),
        rental_start_date=extract_field(text, START_DATE_PATTERN),
        equipment=extract_equipment_lines(text),
    )
