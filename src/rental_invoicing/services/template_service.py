"""Invoice template service.

Keeps at most one default template. Default swaps run inside the caller's
transaction so readers never see zero or two defaults committed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rental_invoicing.models import InvoiceTemplate
from rental_invoicing.rendering.template_config import TemplateConfig
from rental_invoicing.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class TemplateService:
    """CRUD and default resolution for invoice templates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_templates(self) -> Sequence[InvoiceTemplate]:
        """Default first, then oldest first."""
        result = await self.session.execute(
            select(InvoiceTemplate).order_by(
                InvoiceTemplate.is_default.desc(), InvoiceTemplate.created_at
            )
        )
        return result.scalars().all()

    async def get_template(self, template_id: UUID) -> InvoiceTemplate | None:
        return await self.session.get(InvoiceTemplate, template_id)

    async def require_template(self, template_id: UUID) -> InvoiceTemplate:
        template = await self.get_template(template_id)
        if template is None:
            raise NotFoundError("InvoiceTemplate", template_id)
        return template

    async def get_default(self) -> InvoiceTemplate | None:
        """The default template, else the oldest one, else None."""
        default = await self.session.scalar(
            select(InvoiceTemplate).where(InvoiceTemplate.is_default.is_(True)).limit(1)
        )
        if default is not None:
            return default
        return await self._oldest()

    async def resolve_config(self, template_id: UUID | None = None) -> TemplateConfig:
        """Config of the given template, the default template, or built-in defaults."""
        if template_id is not None:
            template = await self.require_template(template_id)
        else:
            template = await self.get_default()
        if template is None:
            return TemplateConfig()
        return self.config_of(template)

    @staticmethod
    def config_of(template: InvoiceTemplate) -> TemplateConfig:
        return TemplateConfig.model_validate(template.template_data or {})

    async def create_template(
        self, name: str, config: TemplateConfig, is_default: bool = False
    ) -> InvoiceTemplate:
        if is_default:
            await self._clear_default()
        template = InvoiceTemplate(
            name=name.strip(),
            template_data=config.to_storage(),
            is_default=is_default,
        )
        self.session.add(template)
        await self.session.flush()
        logger.info("Created template %s (default=%s)", template.template_id, is_default)
        return template

    async def update_template(
        self,
        template_id: UUID,
        name: str | None = None,
        config: TemplateConfig | None = None,
        is_default: bool | None = None,
    ) -> InvoiceTemplate:
        template = await self.require_template(template_id)
        if name is not None:
            template.name = name.strip()
        if config is not None:
            template.template_data = config.to_storage()
        if is_default:
            await self._clear_default(exclude_id=template_id)
            template.is_default = True
        elif is_default is False:
            template.is_default = False
        await self.session.flush()
        return template

    async def set_default(self, template_id: UUID) -> InvoiceTemplate:
        template = await self.require_template(template_id)
        await self._clear_default(exclude_id=template_id)
        template.is_default = True
        await self.session.flush()
        logger.info("Template %s is now the default", template_id)
        return template

    async def duplicate_template(self, template_id: UUID) -> InvoiceTemplate:
        """Copy a template under "<name> (Copy)". The copy is never the default."""
        original = await self.require_template(template_id)
        copy = InvoiceTemplate(
            name=f"{original.name}{COPY_SUFFIX}",
            template_data=dict(original.template_data or {}),
            is_default=False,
        )
        self.session.add(copy)
        await self.session.flush()
        return copy

    async def delete_template(self, template_id: UUID) -> None:
        """Delete a template, promoting the oldest remaining one if it was the default.

        Raises ConflictError when it is the only template.
        """
        template = await self.require_template(template_id)
        total = await self.session.scalar(select(func.count()).select_from(InvoiceTemplate))
        if (total or 0) <= 1:
            raise ConflictError(
                "Cannot delete the only template",
                {"template_id": str(template_id)},
            )

        was_default = template.is_default
        await self.session.delete(template)
        await self.session.flush()

        if was_default:
            successor = await self._oldest()
            if successor is not None:
                successor.is_default = True
                await self.session.flush()
                logger.info("Promoted template %s to default", successor.template_id)

    async def _oldest(self) -> InvoiceTemplate | None:
        return await self.session.scalar(
            select(InvoiceTemplate).order_by(InvoiceTemplate.created_at).limit(1)
        )

    async def _clear_default(self, exclude_id: UUID | None = None) -> None:
        stmt = update(InvoiceTemplate).where(InvoiceTemplate.is_default.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(InvoiceTemplate.template_id != exclude_id)
        await self.session.execute(stmt.values(is_default=False))
