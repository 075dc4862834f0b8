"""Customer endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from rental_invoicing.api.dependencies import DbSession
from rental_invoicing.api.schemas import (
    CustomerCreate,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
    ErrorResponse,
)
from rental_invoicing.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    db: DbSession,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    search: str | None = None,
) -> CustomerListResponse:
    customers, total = await CustomerService(db).list_customers(
        search=search, page=page, limit=page_size
    )
    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/search", response_model=list[CustomerResponse])
async def search_customers(
    db: DbSession, q: Annotated[str | None, Query()] = None
) -> list[CustomerResponse]:
    """Autocomplete by name, phone or email (at least 2 characters)."""
    customers = await CustomerService(db).autocomplete(q)
    return [CustomerResponse.model_validate(c) for c in customers]


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_customer(
    db: DbSession, customer_id: Annotated[UUID, Path()]
) -> CustomerResponse:
    customer = await CustomerService(db).require_customer(customer_id)
    return CustomerResponse.model_validate(customer)


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_customer(db: DbSession, payload: CustomerCreate) -> CustomerResponse:
    customer = await CustomerService(db).create_customer(payload.model_dump())
    await db.commit()
    return CustomerResponse.model_validate(customer)


@router.put(
    "/{customer_id}",
    response_model=CustomerResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_customer(
    db: DbSession,
    customer_id: Annotated[UUID, Path()],
    payload: CustomerUpdate,
) -> CustomerResponse:
    customer = await CustomerService(db).update_customer(
        customer_id, payload.model_dump(exclude_unset=True)
    )
    await db.commit()
    return CustomerResponse.model_validate(customer)


@router.delete(
    "/{customer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_customer(db: DbSession, customer_id: Annotated[UUID, Path()]) -> Response:
    await CustomerService(db).delete_customer(customer_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
