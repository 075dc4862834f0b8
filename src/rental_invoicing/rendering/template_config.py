"""Invoice template configuration."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HEX_COLOR_PATTERN = r"^#(?:[0-9a-fA-F]{3}){1,2}$"


class TemplateConfig(BaseModel):
    """Branding and billing settings stored as an invoice template's data.

    Stored and exchanged with camelCase keys (companyName, taxRate...).
    Missing keys take their defaults, so older rows stay readable.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    company_name: str = Field(default="Sound Rental Pro", min_length=1)
    company_address: str = "123 Music Street\nAudio City, AC 12345"
    company_phone: str = "(555) 123-4567"
    company_email: str = "info@soundrentalpro.com"
    header_color: str = Field(default="#2563eb", pattern=HEX_COLOR_PATTERN)
    accent_color: str = Field(default="#1d4ed8", pattern=HEX_COLOR_PATTERN)
    footer_text: str = ""
    terms_and_conditions: str = ""
    logo_url: str | None = None
    # None defers to the DEFAULT_TAX_RATE setting
    tax_rate: Decimal | None = Field(default=None, ge=0, le=1)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    invoice_number_prefix: str = Field(default="INV", min_length=1)

    def to_storage(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)

    @property
    def number_prefix(self) -> str:
        """Prefix for generated invoice numbers, without a trailing dash."""
        return self.invoice_number_prefix.rstrip("-") or "INV"
