"""Invoice template endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status
from fastapi.responses import HTMLResponse

from rental_invoicing.api.dependencies import AppSettings, DbSession, HtmlRenderer
from rental_invoicing.api.schemas import (
    ErrorResponse,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from rental_invoicing.models import InvoiceTemplate
from rental_invoicing.rendering.html import InvoiceView
from rental_invoicing.services.errors import NotFoundError
from rental_invoicing.services.template_service import TemplateService

router = APIRouter(prefix="/templates", tags=["templates"])


def _template_response(template: InvoiceTemplate) -> TemplateResponse:
    return TemplateResponse(
        template_id=template.template_id,
        name=template.name,
        is_default=template.is_default,
        config=TemplateService.config_of(template),
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


@router.get("", response_model=list[TemplateResponse])
async def list_templates(db: DbSession) -> list[TemplateResponse]:
    """All templates, the default first."""
    templates = await TemplateService(db).list_templates()
    return [_template_response(t) for t in templates]


@router.get(
    "/default",
    response_model=TemplateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_default_template(db: DbSession) -> TemplateResponse:
    """The default template, or the oldest one when none is flagged."""
    template = await TemplateService(db).get_default()
    if template is None:
        raise NotFoundError("InvoiceTemplate", "default")
    return _template_response(template)


@router.get(
    "/{template_id}",
    response_model=TemplateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_template(
    db: DbSession, template_id: Annotated[UUID, Path()]
) -> TemplateResponse:
    template = await TemplateService(db).require_template(template_id)
    return _template_response(template)


@router.get(
    "/{template_id}/preview",
    response_class=HTMLResponse,
    responses={404: {"model": ErrorResponse}},
)
async def preview_template(
    db: DbSession,
    settings: AppSettings,
    renderer: HtmlRenderer,
    template_id: Annotated[UUID, Path()],
) -> HTMLResponse:
    """Render a sample invoice with a saved template."""
    config = await TemplateService(db).resolve_config(template_id)
    tax_rate = config.tax_rate if config.tax_rate is not None else settings.default_tax_rate
    return HTMLResponse(content=renderer.render(InvoiceView.sample(config, tax_rate), config))


@router.post(
    "",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_template(db: DbSession, payload: TemplateCreate) -> TemplateResponse:
    template = await TemplateService(db).create_template(
        payload.name, payload.config, is_default=payload.is_default
    )
    await db.commit()
    return _template_response(template)


@router.put(
    "/{template_id}",
    response_model=TemplateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_template(
    db: DbSession,
    template_id: Annotated[UUID, Path()],
    payload: TemplateUpdate,
) -> TemplateResponse:
    template = await TemplateService(db).update_template(
        template_id,
        name=payload.name,
        config=payload.config,
        is_default=payload.is_default,
    )
    await db.commit()
    return _template_response(template)


@router.post(
    "/{template_id}/default",
    response_model=TemplateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def set_default_template(
    db: DbSession, template_id: Annotated[UUID, Path()]
) -> TemplateResponse:
    """Make this the only default template."""
    template = await TemplateService(db).set_default(template_id)
    await db.commit()
    return _template_response(template)


@router.post(
    "/{template_id}/duplicate",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def duplicate_template(
    db: DbSession, template_id: Annotated[UUID, Path()]
) -> TemplateResponse:
    template = await TemplateService(db).duplicate_template(template_id)
    await db.commit()
    return _template_response(template)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_template(db: DbSession, template_id: Annotated[UUID, Path()]) -> Response:
    """Delete a template. The last remaining template cannot be deleted."""
    await TemplateService(db).delete_template(template_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
