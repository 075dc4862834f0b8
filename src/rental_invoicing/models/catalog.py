"""Equipment catalog models."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_invoicing.models.base import Base, TimestampMixin, UpdatedAtMixin


class EquipmentCategory(Base, TimestampMixin):
    """Grouping for catalog equipment."""

    __tablename__ = "equipment_category"

    category_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    equipment: Mapped[list[Equipment]] = relationship(back_populates="category")


class Equipment(Base, UpdatedAtMixin):
    """Rentable equipment. daily_rate is the authoritative price."""

    __tablename__ = "equipment"

    equipment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("equipment_category.category_id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    weekly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("daily_rate >= 0", name="equipment_daily_rate_check"),
        CheckConstraint("stock_quantity >= 0", name="equipment_stock_check"),
    )

    category: Mapped[EquipmentCategory | None] = relationship(back_populates="equipment")

    @property
    def category_name(self) -> str | None:
        return self.category.name if self.category is not None else None
