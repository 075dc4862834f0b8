"""Pytest fixtures for rental invoicing tests."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from rental_invoicing.config import CommissionPolicy, Settings

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_settings(**overrides) -> Settings:
    """Settings for tests, independent of the process environment."""
    values = {
        "database_url": TEST_DATABASE_URL,
        "host": "127.0.0.1",
        "port": 8000,
        "debug": False,
        "log_level": "DEBUG",
        "openai_api_key": None,
        "openai_vision_model": "gpt-4o",
        "default_tax_rate": Decimal("0.15"),
        "default_currency": "USD",
        "invoice_number_prefix": "INV",
        "invoice_number_attempts": 5,
        "commission_policy": CommissionPolicy(),
        "max_upload_bytes": 1024 * 1024,
        "upload_dir": "uploads",
    }
    values.update(overrides)
    return Settings(**values)


@dataclass
class CatalogEntry:
    """Stand-in for an Equipment row in matcher and resolver tests."""

    name: str
    description: str | None = None
    daily_rate: Decimal = Decimal("0")
    equipment_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.equipment_id is None:
            self.equipment_id = uuid4()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def policy() -> CommissionPolicy:
    return CommissionPolicy()


@pytest.fixture
def catalog() -> list[CatalogEntry]:
    return [
        CatalogEntry("JBL Speaker", "15 inch powered PA speaker", Decimal("50.00")),
        CatalogEntry("Wireless Microphone", "Handheld UHF microphone", Decimal("25.50")),
        CatalogEntry("LED Par Light", "RGBW stage wash light", Decimal("15.00")),
        CatalogEntry("Mixing Console", "16 channel analog mixer", Decimal("80.00")),
    ]


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def catalog_entry():
    return CatalogEntry
