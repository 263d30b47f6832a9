"""Agency forms under ``/api/forms``."""

from typing import Optional

from fastapi import APIRouter, Depends, Response

from agency_billing.models.enums import FormType
from agency_billing.models.forms import AgencyFormFromTemplate, AgencyFormUpdate
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer
from agency_billing.web.auth import get_current_context
from agency_billing.web.dependencies import get_services

router = APIRouter(prefix="/api/forms", tags=["forms"])


@router.get("")
def list_forms(
    form_type: Optional[FormType] = None,
    active_only: bool = False,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    forms = services.forms.list_forms(ctx, form_type=form_type, active_only=active_only)
    return {"forms": [form.to_dict() for form in forms]}


@router.post("/from-template", status_code=201)
def create_from_template(
    payload: AgencyFormFromTemplate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.forms.create_from_template(ctx, payload).to_dict()


@router.get("/{form_id}")
def get_form(
    form_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.forms.get_form(ctx, form_id).to_dict()


@router.patch("/{form_id}")
def update_form(
    form_id: str,
    payload: AgencyFormUpdate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.forms.update_form(ctx, form_id, payload).to_dict()


@router.delete("/{form_id}", status_code=204)
def delete_form(
    form_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    services.forms.delete_form(ctx, form_id)
    return Response(status_code=204)
