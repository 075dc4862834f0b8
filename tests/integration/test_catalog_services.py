"""Template, customer, equipment and employee service integration tests."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from rental_invoicing.models import InvoiceTemplate
from rental_invoicing.rendering.template_config import TemplateConfig
from rental_invoicing.services.catalog_service import EquipmentService
from rental_invoicing.services.commission_service import CommissionService, RoleAssignmentInput
from rental_invoicing.services.customer_service import CustomerService
from rental_invoicing.services.employee_service import EmployeeService
from rental_invoicing.services.errors import ConflictError, NotFoundError
from rental_invoicing.services.invoice_service import InvoiceInput, InvoiceService, LineItemInput
from rental_invoicing.services.template_service import TemplateService


pytestmark = pytest.mark.asyncio


async def create_invoice(session, seed, settings):
    return await InvoiceService(session, settings).create_invoice(
        InvoiceInput(
            rental_start_date=date(2025, 3, 14),
            customer_id=seed.customer.customer_id,
            items=[LineItemInput(equipment_id=seed.speaker.equipment_id)],
        )
    )


async def default_count(session) -> int:
    return await session.scalar(
        select(func.count()).select_from(InvoiceTemplate).where(InvoiceTemplate.is_default.is_(True))
    )


class TestTemplates:
    """At most one default template; the last template cannot be deleted."""

    async def test_create_default_clears_previous(self, session, seed):
        service = TemplateService(session)
        created = await service.create_template(
            "  Festival  ", TemplateConfig(company_name="Festival Sound"), is_default=True
        )

        assert created.name == "Festival"
        assert seed.template.is_default is False
        assert (await service.get_default()).template_id == created.template_id
        assert await default_count(session) == 1

    async def test_set_default(self, session, seed):
        service = TemplateService(session)
        other = await service.create_template("Other", TemplateConfig())

        await service.set_default(other.template_id)

        assert await default_count(session) == 1
        templates = await service.list_templates()
        assert templates[0].template_id == other.template_id

    async def test_duplicate(self, session, seed):
        service = TemplateService(session)
        copy = await service.duplicate_template(seed.template.template_id)

        assert copy.name == "Standard (Copy)"
        assert copy.is_default is False
        assert service.config_of(copy).company_name == "Acme Audio"

    async def test_delete_only_template_refused(self, session, seed):
        with pytest.raises(ConflictError):
            await TemplateService(session).delete_template(seed.template.template_id)

    async def test_delete_default_promotes_oldest(self, session, seed):
        service = TemplateService(session)
        older = await service.create_template("Older", TemplateConfig())
        await service.create_template("Newer", TemplateConfig())

        await service.delete_template(seed.template.template_id)

        default = await service.get_default()
        assert default.template_id == older.template_id
        assert default.is_default is True

    async def test_resolve_config(self, session, seed):
        service = TemplateService(session)
        assert (await service.resolve_config()).company_name == "Acme Audio"
        with pytest.raises(NotFoundError):
            await service.resolve_config(uuid4())

    async def test_resolve_config_without_templates(self, session):
        config = await TemplateService(session).resolve_config()
        assert config == TemplateConfig()

    async def test_update_template(self, session, seed):
        service = TemplateService(session)
        updated = await service.update_template(
            seed.template.template_id,
            name="Renamed",
            config=TemplateConfig(company_name="New Name", tax_rate=Decimal("0.2")),
        )

        assert updated.name == "Renamed"
        assert updated.template_data["companyName"] == "New Name"
        assert updated.template_data["taxRate"] == "0.2"
        assert updated.is_default is True


class TestCustomers:
    async def test_duplicate_name_and_phone(self, session, seed):
        service = CustomerService(session)
        with pytest.raises(ConflictError):
            await service.create_customer({"name": "jane doe", "phone": "555-0100"})

        other = await service.create_customer({"name": "Jane Doe", "phone": "555-0111"})
        assert other.customer_id != seed.customer.customer_id

    async def test_autocomplete(self, session, seed):
        service = CustomerService(session)
        assert await service.autocomplete("J") == []
        assert [c.name for c in await service.autocomplete("jane")] == ["Jane Doe"]
        assert [c.name for c in await service.autocomplete("0100")] == ["Jane Doe"]

    async def test_delete_with_invoices_refused(self, session, seed, settings):
        await create_invoice(session, seed, settings)
        with pytest.raises(ConflictError) as exc_info:
            await CustomerService(session).delete_customer(seed.customer.customer_id)
        assert exc_info.value.context["invoice_count"] == 1


class TestEquipment:
    async def test_list_and_search(self, session, seed):
        service = EquipmentService(session)

        rows, total = await service.list_equipment()
        assert total == 3
        assert [r.name for r in rows] == ["JBL Speaker", "LED Par Light", "Wireless Microphone"]

        rows, total = await service.list_equipment(search="uhf")
        assert [r.name for r in rows] == ["Wireless Microphone"]

        rows, total = await service.list_equipment(active=None)
        assert total == 4

    async def test_delete_unused_is_hard(self, session, seed):
        service = EquipmentService(session)
        assert await service.delete_equipment(seed.light.equipment_id) is True
        assert await service.get_equipment(seed.light.equipment_id) is None

    async def test_delete_invoiced_deactivates(self, session, seed, settings):
        await create_invoice(session, seed, settings)
        service = EquipmentService(session)

        assert await service.delete_equipment(seed.speaker.equipment_id) is False
        equipment = await service.require_equipment(seed.speaker.equipment_id)
        assert equipment.is_active is False

    async def test_unknown_category(self, session, seed):
        with pytest.raises(NotFoundError):
            await EquipmentService(session).create_equipment(
                {"name": "Fog Machine", "daily_rate": Decimal("30"), "category_id": uuid4()}
            )


class TestEmployees:
    async def test_unique_name(self, session, seed):
        service = EmployeeService(session)
        with pytest.raises(ConflictError):
            await service.create_employee({"name": " alice "})
        with pytest.raises(ConflictError):
            await service.update_employee(seed.bob.employee_id, {"name": "Alice"})

    async def test_delete_with_assignments_deactivates(self, session, seed, settings):
        invoice = await create_invoice(session, seed, settings)
        await CommissionService(session, settings.commission_policy).assign_invoice_employees(
            invoice.invoice_id,
            [RoleAssignmentInput(employee_id=seed.alice.employee_id, role="organizer")],
        )
        service = EmployeeService(session)

        assert await service.delete_employee(seed.alice.employee_id) is False
        assert await service.delete_employee(seed.carol.employee_id) is True

        rows, total = await service.list_employees()
        assert [e.name for e in rows] == ["Bob"]
        assert [e.name for e in await service.search("ali")] == []
