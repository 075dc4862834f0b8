"""CLI and application factory tests."""

import pytest

from rental_invoicing.__main__ import RentalCli
from rental_invoicing.api.app import create_app, status_for
from rental_invoicing.services.errors import (
    ConflictError,
    FieldError,
    InvoiceNumberExhaustedError,
    InvoiceValidationError,
    NotFoundError,
    ServiceError,
)


class TestCli:
    """Argument parsing and dispatch."""

    def test_no_command_prints_help(self, capsys):
        assert RentalCli().run([]) == 1
        assert "init-db" in capsys.readouterr().out

    def test_serve_options(self):
        parsed = RentalCli().parser.parse_args(["serve", "--port", "9000", "--reload"])
        assert parsed.command == "serve"
        assert parsed.port == 9000
        assert parsed.reload is True
        assert parsed.host is None

    def test_init_db_flag(self):
        parsed = RentalCli().parser.parse_args(["init-db", "--default-template"])
        assert parsed.default_template is True

    def test_unknown_command_rejected(self):
        with pytest.raises(SystemExit):
            RentalCli().parser.parse_args(["migrate"])


class TestErrorMapping:
    """Service errors map to HTTP status codes."""

    @pytest.mark.parametrize(
        "error, expected",
        [
            (NotFoundError("Invoice", "x"), 404),
            (InvoiceValidationError([FieldError("items", "required")]), 422),
            (ConflictError("busy"), 409),
            (InvoiceNumberExhaustedError(5), 503),
            (ServiceError("other"), 400),
        ],
    )
    def test_status_for(self, error, expected):
        assert status_for(error) == expected

    def test_validation_error_context(self):
        error = InvoiceValidationError(
            [FieldError("items", "required"), FieldError("customer_id", "required")]
        )
        assert error.message == "items: required; customer_id: required"
        assert error.context["errors"][1] == {"field": "customer_id", "message": "required"}


class TestAppFactory:
    def test_routes_mounted(self, settings):
        app = create_app(settings=settings)
        paths = {route.path for route in app.routes}

        assert "/health" in paths
        assert "/api/v1/invoices" in paths
        assert "/api/v1/invoices/{invoice_id}/pdf" in paths
        assert "/api/v1/employees/unpaid-commissions" in paths
        assert "/api/v1/invoice-scanner/scan" in paths
        assert "/api/v1/templates/{template_id}/duplicate" in paths
        assert app.state.settings is settings
        assert app.state.pdf_renderer is None
