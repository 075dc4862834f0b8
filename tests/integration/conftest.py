"""Integration fixtures: in-memory SQLite database, seeded catalog and API client."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from rental_invoicing.api.app import create_app
from rental_invoicing.api.dependencies import get_db_session
from rental_invoicing.models import (
    Base,
    Customer,
    Employee,
    Equipment,
    EquipmentCategory,
    InvoiceTemplate,
)
from rental_invoicing.rendering.template_config import TemplateConfig

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@dataclass
class Seed:
    speaker: Equipment
    microphone: Equipment
    light: Equipment
    retired: Equipment
    customer: Customer
    alice: Employee
    bob: Employee
    carol: Employee
    template: InvoiceTemplate


@pytest.fixture
async def seed(session: AsyncSession) -> Seed:
    """Catalog, one customer, three employees and a default template."""
    audio = EquipmentCategory(name="Audio")
    lighting = EquipmentCategory(name="Lighting")
    session.add_all([audio, lighting])
    await session.flush()

    speaker = Equipment(
        name="JBL Speaker",
        description="15 inch powered PA speaker",
        daily_rate=Decimal("50.00"),
        category_id=audio.category_id,
    )
    microphone = Equipment(
        name="Wireless Microphone",
        description="Handheld UHF microphone",
        daily_rate=Decimal("25.50"),
        category_id=audio.category_id,
    )
    light = Equipment(
        name="LED Par Light",
        description="RGBW stage wash light",
        daily_rate=Decimal("15.00"),
        category_id=lighting.category_id,
    )
    retired = Equipment(
        name="Cassette Deck",
        description="Dual tape deck",
        daily_rate=Decimal("5.00"),
        is_active=False,
    )
    customer = Customer(name="Jane Doe", phone="555-0100", email="jane@example.com")
    alice = Employee(name="Alice", email="alice@example.com")
    bob = Employee(name="Bob")
    carol = Employee(name="Carol")
    template = InvoiceTemplate(
        name="Standard",
        template_data=TemplateConfig(company_name="Acme Audio").to_storage(),
        is_default=True,
    )
    session.add_all([speaker, microphone, light, retired, customer, alice, bob, carol, template])
    await session.commit()

    return Seed(
        speaker=speaker,
        microphone=microphone,
        light=light,
        retired=retired,
        customer=customer,
        alice=alice,
        bob=bob,
        carol=carol,
        template=template,
    )


class FakeExtractor:
    """Vision extractor returning a canned slip."""

    def __init__(self, result: dict):
        self.result = result

    async def extract(self, image: bytes, mime_type: str) -> dict:
        return self.result


class FakePdfRenderer:
    def render(self, html: str) -> bytes:
        return b"%PDF-1.4 " + html[:20].encode()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor(
        {
            "customer_name": "Jane Doe",
            "phone_number": "555-0100",
            "rental_start_date": "2025-03-14",
            "rental_duration_days": 2,
            "equipment": [
                {"equipment_name": "jbl speaker", "quantity": 2},
                {"equipment_name": "smoke machine", "quantity": 1},
            ],
        }
    )


@pytest.fixture
def app(session, settings, extractor):
    app = create_app(
        settings=settings,
        vision_extractor=extractor,
        pdf_renderer=FakePdfRenderer(),
    )

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db_session] = override_session
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
