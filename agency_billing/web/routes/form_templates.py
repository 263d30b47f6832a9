"""Super admin form template management under ``/api/super-admin/form-templates``."""

from fastapi import APIRouter, Depends, Response

from agency_billing.models.forms import (
    FormTemplateCreate,
    FormTemplateUpdate,
    TemplateReorder,
)
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer
from agency_billing.web.auth import get_current_context
from agency_billing.web.dependencies import get_services

router = APIRouter(prefix="/api/super-admin/form-templates", tags=["form-templates"])


@router.get("")
def list_templates(
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    templates = services.templates.list_templates(ctx)
    return {"templates": [template.to_dict() for template in templates]}


@router.post("", status_code=201)
def create_template(
    payload: FormTemplateCreate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.templates.create_template(ctx, payload).to_dict()


@router.post("/reorder")
def reorder_templates(
    payload: TemplateReorder,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    services.templates.reorder_templates(ctx, payload.items)
    return {"success": True}


@router.get("/{template_id}")
def get_template(
    template_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.templates.get_template(ctx, template_id).to_dict()


@router.patch("/{template_id}")
def update_template(
    template_id: str,
    payload: FormTemplateUpdate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.templates.update_template(ctx, template_id, payload).to_dict()


@router.delete("/{template_id}", status_code=204)
def delete_template(
    template_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    services.templates.delete_template(ctx, template_id)
    return Response(status_code=204)


@router.get("/{template_id}/push-preview")
def push_preview(
    template_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    count = services.templates.get_push_preview(ctx, template_id)
    return {"template_id": template_id, "affected_count": count}


@router.post("/{template_id}/push")
def push_template(
    template_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.templates.push_template_update(ctx, template_id).to_dict()


@router.post("/{template_id}/rollback")
def rollback_template(
    template_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.templates.rollback_template_push(ctx, template_id).to_dict()
