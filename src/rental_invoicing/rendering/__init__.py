"""Invoice rendering: HTML through Jinja2, PDF through a pluggable renderer."""

from rental_invoicing.rendering.formatters import Formatters, format_currency, format_date
from rental_invoicing.rendering.html import (
    InvoiceHtmlRenderer,
    InvoiceView,
    ItemView,
    ServiceView,
)
from rental_invoicing.rendering.pdf import PdfRenderer, PdfRenderingError, pdf_filename
from rental_invoicing.rendering.template_config import TemplateConfig

__all__ = [
    "Formatters",
    "InvoiceHtmlRenderer",
    "InvoiceView",
    "ItemView",
    "PdfRenderer",
    "PdfRenderingError",
    "ServiceView",
    "TemplateConfig",
    "format_currency",
    "format_date",
    "pdf_filename",
]
