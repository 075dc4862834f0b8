"""Rental invoicing command line interface.

Usage:
    python -m rental_invoicing serve [--host H] [--port P] [--reload]
    python -m rental_invoicing init-db [--default-template]
    python -m rental_invoicing audit-totals
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Callable

from sqlalchemy import select

from rental_invoicing.config import configure_logging, get_settings


class RentalCli:
    """Rental invoicing command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m rental_invoicing",
            description="Rental invoicing service tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        serve = subparsers.add_parser("serve", help="Run the HTTP API")
        serve.add_argument("--host", type=str, help="Bind address (default: $HOST)")
        serve.add_argument("--port", type=int, help="Port (default: $PORT)")
        serve.add_argument(
            "--reload",
            action="store_true",
            help="Reload on code changes (development only)",
        )

        init_db = subparsers.add_parser("init-db", help="Create database tables")
        init_db.add_argument(
            "--default-template",
            action="store_true",
            help="Also create a default invoice template when none exists",
        )

        subparsers.add_parser(
            "audit-totals",
            help="Report invoices whose stored total differs from a recalculation",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(get_settings().log_level)

        handlers: dict[str, Callable[..., int]] = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "audit-totals": self._cmd_audit_totals,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        import uvicorn

        settings = get_settings()
        uvicorn.run(
            "rental_invoicing.api.app:create_app",
            factory=True,
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=args.reload,
            log_level=settings.log_level.lower(),
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        return asyncio.run(self._init_db(args.default_template))

    async def _init_db(self, default_template: bool) -> int:
        from rental_invoicing.database import create_schema, dispose_db, get_session
        from rental_invoicing.rendering.template_config import TemplateConfig
        from rental_invoicing.services.template_service import TemplateService

        try:
            await create_schema()
            print("Schema created.")
            if default_template:
                async with get_session() as session:
                    service = TemplateService(session)
                    if await service.get_default() is None:
                        settings = get_settings()
                        await service.create_template(
                            "Default",
                            TemplateConfig(
                                currency=settings.default_currency,
                                invoice_number_prefix=settings.invoice_number_prefix,
                            ),
                            is_default=True,
                        )
                        print("Default template created.")
                    else:
                        print("A template already exists; nothing to do.")
        finally:
            await dispose_db()
        return 0

    def _cmd_audit_totals(self, args: argparse.Namespace) -> int:
        return asyncio.run(self._audit_totals())

    async def _audit_totals(self) -> int:
        from rental_invoicing.database import dispose_db, get_session
        from rental_invoicing.models import Invoice
        from rental_invoicing.services.invoice_service import InvoiceService

        mismatches = 0
        try:
            async with get_session() as session:
                service = InvoiceService(session)
                invoice_ids = (await session.scalars(select(Invoice.invoice_id))).all()
                for invoice_id in invoice_ids:
                    audit = await service.audit_totals(invoice_id)
                    if not audit.consistent:
                        mismatches += 1
                        print(
                            f"{audit.invoice_number}: stored {audit.stored_total_due}, "
                            f"calculated {audit.calculated.total_due} "
                            f"(difference {audit.difference})"
                        )
        finally:
            await dispose_db()

        print(f"{len(invoice_ids)} invoice(s) checked, {mismatches} mismatch(es).")
        return 1 if mismatches else 0


def main() -> int:
    """CLI entry point."""
    cli = RentalCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
