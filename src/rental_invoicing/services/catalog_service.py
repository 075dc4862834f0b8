"""Equipment catalog service."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rental_invoicing.models import Equipment, EquipmentCategory, InvoiceItem
from rental_invoicing.services.errors import NotFoundError

logger = logging.getLogger(__name__)


async def load_active_catalog(session: AsyncSession) -> Sequence[Equipment]:
    """All active equipment ordered by name, as the matcher's catalog."""
    result = await session.execute(
        select(Equipment).where(Equipment.is_active.is_(True)).order_by(Equipment.name)
    )
    return result.scalars().all()


class EquipmentService:
    """Catalog CRUD with soft delete for equipment already invoiced."""

    EDITABLE_FIELDS = (
        "name",
        "description",
        "category_id",
        "daily_rate",
        "weekly_rate",
        "monthly_rate",
        "stock_quantity",
        "is_active",
    )

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_equipment(self, equipment_id: UUID) -> Equipment | None:
        result = await self.session.execute(
            select(Equipment)
            .where(Equipment.equipment_id == equipment_id)
            .options(selectinload(Equipment.category))
        )
        return result.scalar_one_or_none()

    async def require_equipment(self, equipment_id: UUID) -> Equipment:
        equipment = await self.get_equipment(equipment_id)
        if equipment is None:
            raise NotFoundError("Equipment", equipment_id)
        return equipment

    async def find_by_name(self, name: str) -> Equipment | None:
        """Active equipment whose name matches case-insensitively."""
        result = await self.session.execute(
            select(Equipment)
            .where(
                func.lower(Equipment.name) == name.strip().lower(),
                Equipment.is_active.is_(True),
            )
            .order_by(Equipment.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_equipment(
        self,
        search: str | None = None,
        category_id: UUID | None = None,
        active: bool | None = True,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Equipment], int]:
        """Filtered page of equipment ordered by name, plus the total match count.

        active=None returns active and inactive rows.
        """
        conditions = []
        if active is not None:
            conditions.append(Equipment.is_active.is_(active))
        if category_id is not None:
            conditions.append(Equipment.category_id == category_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Equipment.name.ilike(pattern), Equipment.description.ilike(pattern))
            )

        total = await self.session.scalar(
            select(func.count()).select_from(Equipment).where(*conditions)
        )
        result = await self.session.execute(
            select(Equipment)
            .where(*conditions)
            .options(selectinload(Equipment.category))
            .order_by(Equipment.name)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total or 0

    async def list_categories(self) -> Sequence[EquipmentCategory]:
        result = await self.session.execute(
            select(EquipmentCategory).order_by(EquipmentCategory.name)
        )
        return result.scalars().all()

    async def create_category(self, name: str, description: str | None = None) -> EquipmentCategory:
        category = EquipmentCategory(name=name, description=description)
        self.session.add(category)
        await self.session.flush()
        return category

    async def create_equipment(self, data: Mapping[str, Any]) -> Equipment:
        if data.get("category_id") is not None:
            await self._require_category(data["category_id"])
        equipment = Equipment(**{k: v for k, v in data.items() if k in self.EDITABLE_FIELDS})
        self.session.add(equipment)
        await self.session.flush()
        await self.session.refresh(equipment, ["category"])
        logger.info("Created equipment %s (%s)", equipment.equipment_id, equipment.name)
        return equipment

    async def update_equipment(self, equipment_id: UUID, data: Mapping[str, Any]) -> Equipment:
        equipment = await self.require_equipment(equipment_id)
        if data.get("category_id") is not None:
            await self._require_category(data["category_id"])
        for field, value in data.items():
            if field in self.EDITABLE_FIELDS:
                setattr(equipment, field, value)
        await self.session.flush()
        await self.session.refresh(equipment, ["category"])
        return equipment

    async def delete_equipment(self, equipment_id: UUID) -> bool:
        """Delete equipment, or deactivate it when invoices reference it.

        Returns True for a hard delete, False for a deactivation.
        """
        equipment = await self.require_equipment(equipment_id)
        references = await self.session.scalar(
            select(func.count())
            .select_from(InvoiceItem)
            .where(InvoiceItem.equipment_id == equipment_id)
        )
        if references:
            equipment.is_active = False
            await self.session.flush()
            logger.info("Deactivated equipment %s (used on %d lines)", equipment_id, references)
            return False

        await self.session.delete(equipment)
        await self.session.flush()
        return True

    async def _require_category(self, category_id: UUID) -> EquipmentCategory:
        category = await self.session.get(EquipmentCategory, category_id)
        if category is None:
            raise NotFoundError("EquipmentCategory", category_id)
        return category
