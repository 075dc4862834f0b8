"""API endpoint integration tests.

Tests the FastAPI endpoints through an in-process ASGI client.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from rental_invoicing.api.app import create_app
from rental_invoicing.api.dependencies import get_db_session


pytestmark = pytest.mark.asyncio


def invoice_payload(seed, **overrides) -> dict:
    payload = {
        "customer_id": str(seed.customer.customer_id),
        "rental_start_date": "2025-03-14",
        "rental_duration_days": 2,
        "items": [
            {"equipment_id": str(seed.speaker.equipment_id), "quantity": 2, "rental_days": 2}
        ],
        "services": [{"name": "Setup", "amount": "30", "discount": "5"}],
        "transport_amount": "50",
        "transport_discount": "10",
        "tax_amount": "0",
    }
    payload.update(overrides)
    return payload


async def create_invoice(client: AsyncClient, seed, **overrides) -> dict:
    response = await client.post("/api/v1/invoices", json=invoice_payload(seed, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Service status reporting."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert data["database"] == "ok"
        assert data["scanner_enabled"] is True
        assert data["pdf_enabled"] is True
        assert "timestamp" in data

    async def test_reports_missing_integrations(self, session, settings_factory):
        """No API key and no PDF renderer switch those features off."""
        app = create_app(settings=settings_factory(openai_api_key=None))

        async def override_session():
            yield session

        app.dependency_overrides[get_db_session] = override_session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            data = (await client.get("/health")).json()

        assert data["status"] == "ok"
        assert data["scanner_enabled"] is False
        assert data["pdf_enabled"] is False

    async def test_api_key_enables_scanner(self, session, settings_factory):
        app = create_app(settings=settings_factory(openai_api_key="sk-test"))

        async def override_session():
            yield session

        app.dependency_overrides[get_db_session] = override_session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            data = (await client.get("/health")).json()

        assert data["scanner_enabled"] is True

    async def test_unreachable_database_is_degraded(self, app):
        class BrokenSession:
            async def execute(self, *args, **kwargs):
                raise SQLAlchemyError("connection refused")

        async def override_session():
            yield BrokenSession()

        app.dependency_overrides[get_db_session] = override_session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"] == "unreachable"

    async def test_only_health_route_is_exposed(self, client: AsyncClient):
        assert (await client.get("/ready")).status_code == 404
        assert (await client.get("/live")).status_code == 404


class TestInvoiceEndpoints:
    """Invoice CRUD, status and rendering endpoints."""

    async def test_create_invoice(self, client: AsyncClient, seed):
        data = await create_invoice(client, seed)

        assert Decimal(data["total_due"]) == Decimal("265.00")
        assert Decimal(data["equipment_subtotal"]) == Decimal("200.00")
        assert data["status"] == "unpaid"
        assert data["customer"]["name"] == "Jane Doe"
        assert data["items"][0]["rate_source"] == "catalog"
        assert data["services"][0]["employee_assignments"] == []

    async def test_client_totals_ignored(self, client: AsyncClient, seed):
        """Totals are computed server-side; unknown fields are dropped."""
        data = await create_invoice(client, seed, total_due="1.00")
        assert Decimal(data["total_due"]) == Decimal("265.00")

    async def test_create_requires_items(self, client: AsyncClient, seed):
        response = await client.post("/api/v1/invoices", json=invoice_payload(seed, items=[]))

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["context"]["errors"][0]["field"] == "items"

    async def test_unknown_status_rejected(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/invoices", json=invoice_payload(seed, status="archived")
        )
        assert response.status_code == 422

    @pytest.mark.parametrize(
        "overrides",
        [
            {"transport_amount": "1e30"},
            {"tax_amount": "99999999999.00"},
            {"transport_discount": "1.005"},
        ],
    )
    async def test_out_of_range_money_rejected(self, client: AsyncClient, seed, overrides):
        """Amounts that do not fit a 12-digit, 2-place column are a 422, not a 500."""
        response = await client.post(
            "/api/v1/invoices", json=invoice_payload(seed, **overrides)
        )
        assert response.status_code == 422

    async def test_out_of_range_line_rate_rejected(self, client: AsyncClient, seed):
        items = [{"equipment_name": "Smoke Machine", "quantity": 1, "rate": "1e30"}]
        response = await client.post(
            "/api/v1/invoices", json=invoice_payload(seed, items=items)
        )
        assert response.status_code == 422

    async def test_get_missing_invoice(self, client: AsyncClient):
        response = await client.get(f"/api/v1/invoices/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_update_invoice(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)
        setup_id = created["services"][0]["service_id"]

        response = await client.put(
            f"/api/v1/invoices/{created['invoice_id']}",
            json=invoice_payload(
                seed,
                services=[{"service_id": setup_id, "name": "Setup", "amount": "45"}],
            ),
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["services"][0]["service_id"] == setup_id
        assert Decimal(data["total_due"]) == Decimal("285.00")
        assert data["invoice_number"] == created["invoice_number"]

    async def test_list_and_filter(self, client: AsyncClient, seed):
        await create_invoice(client, seed)
        await create_invoice(client, seed, status="draft", rental_start_date="2025-04-02")

        data = (await client.get("/api/v1/invoices")).json()
        assert data["total"] == 2
        assert data["page"] == 1

        data = (await client.get("/api/v1/invoices", params={"status": "sent"})).json()
        assert data["total"] == 1
        assert data["items"][0]["status"] == "unpaid"

        data = (
            await client.get("/api/v1/invoices", params={"start_date": "2025-04-01"})
        ).json()
        assert [i["rental_start_date"] for i in data["items"]] == ["2025-04-02"]

        response = await client.get("/api/v1/invoices", params={"status": "bogus"})
        assert response.status_code == 422

    async def test_status_transitions(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed, status="draft")
        url = f"/api/v1/invoices/{created['invoice_id']}/status"

        response = await client.patch(url, json={"status": "paid"})
        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "INVALID_TRANSITION"
        assert data["context"] == {"from_status": "draft", "to_status": "paid"}

        response = await client.patch(url, json={"status": "unpaid"})
        assert response.status_code == 200
        assert response.json()["status"] == "unpaid"

    async def test_delete_invoice(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)

        response = await client.delete(f"/api/v1/invoices/{created['invoice_id']}")
        assert response.status_code == 204

        response = await client.get(f"/api/v1/invoices/{created['invoice_id']}")
        assert response.status_code == 404

    async def test_calendar(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed, rental_duration_days=3)

        response = await client.get("/api/v1/invoices/calendar", params={"year": 2025, "month": 3})

        assert response.status_code == 200
        [event] = response.json()
        assert event["invoice_id"] == created["invoice_id"]
        assert event["start"] == "2025-03-14"
        assert event["end"] == "2025-03-16"
        assert event["equipment"] == [{"name": "JBL Speaker", "quantity": 2}]

    async def test_totals_audit(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)

        response = await client.get(f"/api/v1/invoices/{created['invoice_id']}/totals")

        assert response.status_code == 200
        data = response.json()
        assert data["consistent"] is True
        assert Decimal(data["calculated"]["total_due"]) == Decimal("265.00")
        assert Decimal(data["difference"]) == Decimal("0")

    async def test_html_and_pdf(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)
        invoice_id = created["invoice_id"]

        response = await client.get(f"/api/v1/invoices/{invoice_id}/html")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Acme Audio" in response.text
        assert "$265.00" in response.text

        response = await client.get(f"/api/v1/invoices/{invoice_id}/pdf")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
        assert created["invoice_number"] in response.headers["content-disposition"]

    async def test_preview_template(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/invoices/preview-template",
            json={"config": {"companyName": "Preview Co", "taxRate": "0"}},
        )
        assert response.status_code == 200
        assert "Preview Co" in response.text


class TestCommissionEndpoints:
    """Assignments, reports and payment batches over HTTP."""

    async def test_assign_and_report(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)
        invoice_id = created["invoice_id"]

        response = await client.post(
            f"/api/v1/invoices/{invoice_id}/assign-employees",
            json={
                "assignments": [
                    {"employee_id": str(seed.alice.employee_id), "role": "organizer"},
                    {"employee_id": str(seed.bob.employee_id), "role": "organizer"},
                    {"employee_id": str(seed.carol.employee_id), "role": "setup"},
                ]
            },
        )
        assert response.status_code == 200, response.text
        amounts = {a["employee_name"]: Decimal(a["commission_amount"]) for a in response.json()}
        assert amounts == {
            "Alice": Decimal("13.25"),
            "Bob": Decimal("13.25"),
            "Carol": Decimal("79.50"),
        }

        data = (await client.get(f"/api/v1/invoices/{invoice_id}/commissions")).json()
        assert Decimal(data["total_commission"]) == Decimal("106.00")

        await client.patch(f"/api/v1/invoices/{invoice_id}/status", json={"status": "paid"})
        summary = (await client.get("/api/v1/employees/unpaid-commissions")).json()
        assert [s["employee_name"] for s in summary][0] == "Carol"

        response = await client.post(
            f"/api/v1/employees/{seed.carol.employee_id}/mark-paid",
            json={"payment_batch_id": "BATCH-42"},
        )
        assert response.status_code == 200
        batch = response.json()
        assert batch["assignments_paid"] == 1
        assert Decimal(batch["total_amount"]) == Decimal("79.50")

        batches = (
            await client.get(
                "/api/v1/employees/paid-commissions", params={"payment_batch_id": "BATCH-42"}
            )
        ).json()
        assert [b["employee_name"] for b in batches] == ["Carol"]
        assert batches[0]["assignment_count"] == 1

        response = await client.delete(f"/api/v1/invoices/{invoice_id}")
        assert response.status_code == 409

    async def test_invalid_role(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)
        response = await client.post(
            f"/api/v1/invoices/{created['invoice_id']}/assign-employees",
            json={"assignments": [{"employee_id": str(seed.alice.employee_id), "role": "dj"}]},
        )
        assert response.status_code == 422

    async def test_service_assignments(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)
        invoice_id = created["invoice_id"]
        service_id = created["services"][0]["service_id"]
        url = f"/api/v1/invoices/{invoice_id}/service-assignments"

        response = await client.post(
            url,
            json={
                "service_id": service_id,
                "employee_id": str(seed.alice.employee_id),
                "commission_percentage": "80",
            },
        )
        assert response.status_code == 201, response.text
        response = await client.post(
            url,
            json={
                "service_id": service_id,
                "employee_id": str(seed.bob.employee_id),
                "commission_percentage": "40",
            },
        )
        data = response.json()
        assert data["over_allocated"] is True
        assert Decimal(data["total_percentage"]) == Decimal("120")

        assignment_id = data["assignments"][1]["assignment_id"]
        response = await client.put(
            f"{url}/{assignment_id}", json={"commission_percentage": "20"}
        )
        assert response.json()["over_allocated"] is False

        response = await client.delete(f"{url}/{assignment_id}")
        assert response.status_code == 204

        [allocation] = (await client.get(url)).json()
        assert [a["employee_name"] for a in allocation["assignments"]] == ["Alice"]
        assert Decimal(allocation["assignments"][0]["commission_amount"]) == Decimal("20.00")

        response = await client.post(
            url,
            json={
                "service_id": service_id,
                "employee_id": str(seed.alice.employee_id),
                "commission_percentage": "5",
            },
        )
        assert response.status_code == 409

    async def test_employee_commission_views(self, client: AsyncClient, seed):
        created = await create_invoice(client, seed)
        await client.post(
            f"/api/v1/invoices/{created['invoice_id']}/assign-employees",
            json={"assignments": [{"employee_id": str(seed.alice.employee_id), "role": "organizer"}]},
        )

        data = (await client.get(f"/api/v1/employees/{seed.alice.employee_id}/commissions")).json()
        assert Decimal(data["total_commission"]) == Decimal("13.25")

        data = (await client.get(f"/api/v1/employees/{seed.alice.employee_id}/assignments")).json()
        assert data["total"] == 1
        assert data["items"][0]["role"] == "organizer"

        response = await client.get(f"/api/v1/employees/{uuid4()}/commissions")
        assert response.status_code == 404


class TestCatalogEndpoints:
    """Equipment, customers, employees and templates."""

    async def test_equipment_crud(self, client: AsyncClient, seed):
        categories = (await client.get("/api/v1/equipment/categories")).json()
        audio_id = next(c["category_id"] for c in categories if c["name"] == "Audio")

        response = await client.post(
            "/api/v1/equipment",
            json={"name": "Subwoofer", "daily_rate": "65.00", "category_id": audio_id},
        )
        assert response.status_code == 201
        created = response.json()
        assert created["category_name"] == "Audio"

        response = await client.put(
            f"/api/v1/equipment/{created['equipment_id']}", json={"daily_rate": "70"}
        )
        assert Decimal(response.json()["daily_rate"]) == Decimal("70")

        data = (await client.get("/api/v1/equipment", params={"search": "sub"})).json()
        assert [e["name"] for e in data["items"]] == ["Subwoofer"]

        response = await client.delete(f"/api/v1/equipment/{created['equipment_id']}")
        assert response.json() == {
            "id": created["equipment_id"],
            "deleted": True,
            "deactivated": False,
        }

    async def test_equipment_rate_bounds(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/equipment", json={"name": "Subwoofer", "daily_rate": "1e30"}
        )
        assert response.status_code == 422

        response = await client.put(
            f"/api/v1/equipment/{seed.speaker.equipment_id}", json={"weekly_rate": "12.345"}
        )
        assert response.status_code == 422

    async def test_invoiced_equipment_deactivated(self, client: AsyncClient, seed):
        await create_invoice(client, seed)
        response = await client.delete(f"/api/v1/equipment/{seed.speaker.equipment_id}")
        assert response.json()["deactivated"] is True

    async def test_customers(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/customers", json={"name": "Sam Lee", "phone": "555-0199"}
        )
        assert response.status_code == 201

        response = await client.post(
            "/api/v1/customers", json={"name": "Sam Lee", "phone": "555-0199"}
        )
        assert response.status_code == 409

        results = (await client.get("/api/v1/customers/search", params={"q": "sam"})).json()
        assert [c["name"] for c in results] == ["Sam Lee"]

        data = (await client.get("/api/v1/customers")).json()
        assert data["total"] == 2

    async def test_employees(self, client: AsyncClient, seed):
        response = await client.post("/api/v1/employees", json={"name": "Dana"})
        assert response.status_code == 201
        employee_id = response.json()["employee_id"]

        response = await client.post("/api/v1/employees", json={"name": "dana"})
        assert response.status_code == 409

        results = (await client.get("/api/v1/employees/search", params={"q": "dan"})).json()
        assert [e["name"] for e in results] == ["Dana"]

        response = await client.delete(f"/api/v1/employees/{employee_id}")
        assert response.json()["deleted"] is True

    async def test_templates(self, client: AsyncClient, seed):
        default = (await client.get("/api/v1/templates/default")).json()
        assert default["config"]["companyName"] == "Acme Audio"

        response = await client.post(
            "/api/v1/templates",
            json={"name": "Summer", "config": {"companyName": "Summer Sound"}, "is_default": True},
        )
        assert response.status_code == 201
        summer = response.json()

        default = (await client.get("/api/v1/templates/default")).json()
        assert default["template_id"] == summer["template_id"]

        response = await client.post(f"/api/v1/templates/{summer['template_id']}/duplicate")
        assert response.status_code == 201
        assert response.json()["name"] == "Summer (Copy)"

        response = await client.get(f"/api/v1/templates/{summer['template_id']}/preview")
        assert "Summer Sound" in response.text

        response = await client.delete(f"/api/v1/templates/{summer['template_id']}")
        assert response.status_code == 204
        templates = (await client.get("/api/v1/templates")).json()
        assert sum(t["is_default"] for t in templates) == 1

    async def test_invalid_template_color(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/templates",
            json={"name": "Broken", "config": {"headerColor": "blue"}},
        )
        assert response.status_code == 422


class TestScannerEndpoints:
    """Slip scanning and OCR text parsing."""

    async def test_scan_image(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/invoice-scanner/scan",
            files={"file": ("slip.png", b"\x89PNG fake image", "image/png")},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["customer_name"] == "Jane Doe"
        matched, unmatched = data["equipment"]
        assert matched["equipment_name"] == "JBL Speaker"
        assert matched["match_confidence"] == "matched"
        assert Decimal(matched["daily_rate"]) == Decimal("50.00")
        assert unmatched["match_confidence"] == "no_match"
        assert Decimal(unmatched["daily_rate"]) == Decimal("0")

    async def test_unsupported_type(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/invoice-scanner/scan",
            files={"file": ("slip.pdf", b"%PDF", "application/pdf")},
        )
        assert response.status_code == 415

    async def test_too_large(self, client: AsyncClient, seed, settings):
        oversized = b"0" * (settings.max_upload_bytes + 1)
        response = await client.post(
            "/api/v1/invoice-scanner/scan",
            files={"file": ("slip.jpg", oversized, "image/jpeg")},
        )
        assert response.status_code == 413

    async def test_parse_text(self, client: AsyncClient, seed):
        response = await client.post(
            "/api/v1/invoice-scanner/parse-text",
            json={"text": "2 x JBL Speaker\nCustomer: Jane Doe\nStart: 2025-03-14\n"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["customer_name"] == "Jane Doe"
        assert data["rental_start_date"] == "2025-03-14"
        assert data["equipment"][0]["equipment_name"] == "JBL Speaker"
        assert data["equipment"][0]["quantity"] == 2

    async def test_disabled_without_api_key(self, session, settings_factory):
        app = create_app(settings=settings_factory(openai_api_key=None))

        async def override_session():
            yield session

        app.dependency_overrides[get_db_session] = override_session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            status_response = await client.get("/api/v1/invoice-scanner/status")
            assert status_response.json() == {"enabled": False}

            response = await client.post(
                "/api/v1/invoice-scanner/scan",
                files={"file": ("slip.png", b"\x89PNG", "image/png")},
            )
            assert response.status_code == 503

            response = await client.get(f"/api/v1/invoices/{uuid4()}/pdf")
            assert response.status_code == 503
