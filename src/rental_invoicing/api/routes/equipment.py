"""Equipment catalog endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from rental_invoicing.api.dependencies import DbSession
from rental_invoicing.api.schemas import (
    CategoryCreate,
    CategoryResponse,
    DeleteResponse,
    EquipmentCreate,
    EquipmentListResponse,
    EquipmentResponse,
    EquipmentUpdate,
    ErrorResponse,
)
from rental_invoicing.services.catalog_service import EquipmentService

router = APIRouter(prefix="/equipment", tags=["equipment"])


# ============================================================================
# Categories
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: DbSession) -> list[CategoryResponse]:
    categories = await EquipmentService(db).list_categories()
    return [CategoryResponse.model_validate(c) for c in categories]


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(db: DbSession, payload: CategoryCreate) -> CategoryResponse:
    category = await EquipmentService(db).create_category(payload.name, payload.description)
    await db.commit()
    return CategoryResponse.model_validate(category)


# ============================================================================
# Equipment CRUD
# ============================================================================


@router.get("", response_model=EquipmentListResponse)
async def list_equipment(
    db: DbSession,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    search: str | None = None,
    category_id: UUID | None = None,
    include_inactive: bool = False,
) -> EquipmentListResponse:
    """List catalog equipment; inactive items only when include_inactive is set."""
    items, total = await EquipmentService(db).list_equipment(
        search=search,
        category_id=category_id,
        active=None if include_inactive else True,
        page=page,
        limit=page_size,
    )
    return EquipmentListResponse(
        items=[EquipmentResponse.model_validate(e) for e in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{equipment_id}",
    response_model=EquipmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_equipment(
    db: DbSession, equipment_id: Annotated[UUID, Path()]
) -> EquipmentResponse:
    equipment = await EquipmentService(db).require_equipment(equipment_id)
    return EquipmentResponse.model_validate(equipment)


@router.post(
    "",
    response_model=EquipmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_equipment(db: DbSession, payload: EquipmentCreate) -> EquipmentResponse:
    equipment = await EquipmentService(db).create_equipment(payload.model_dump())
    await db.commit()
    return EquipmentResponse.model_validate(equipment)


@router.put(
    "/{equipment_id}",
    response_model=EquipmentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_equipment(
    db: DbSession,
    equipment_id: Annotated[UUID, Path()],
    payload: EquipmentUpdate,
) -> EquipmentResponse:
    equipment = await EquipmentService(db).update_equipment(
        equipment_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return EquipmentResponse.model_validate(equipment)


@router.delete(
    "/{equipment_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
)
async def delete_equipment(
    db: DbSession, equipment_id: Annotated[UUID, Path()]
) -> DeleteResponse:
    """Delete equipment; equipment already on invoices is deactivated instead."""
    deleted = await EquipmentService(db).delete_equipment(equipment_id)
    await db.commit()
    return DeleteResponse(id=equipment_id, deleted=deleted, deactivated=not deleted)
