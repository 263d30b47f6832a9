"""Recurring invoice schedules under ``/api/recurring-invoices``."""

from typing import Optional

from fastapi import APIRouter, Depends, Response

from agency_billing.models.enums import RecurringStatus
from agency_billing.models.recurring import RecurringInvoiceCreate, RecurringInvoiceUpdate
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer
from agency_billing.web.auth import get_current_context
from agency_billing.web.dependencies import get_services

router = APIRouter(prefix="/api/recurring-invoices", tags=["recurring"])


@router.get("")
def list_schedules(
    status: Optional[RecurringStatus] = None,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    schedules = services.recurring.list_schedules(ctx, status)
    return {"recurring_invoices": [schedule.to_dict() for schedule in schedules]}


@router.post("", status_code=201)
def create_schedule(
    payload: RecurringInvoiceCreate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.recurring.create_schedule(ctx, payload).to_dict()


@router.get("/{schedule_id}")
def get_schedule(
    schedule_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.recurring.get_schedule(ctx, schedule_id).to_dict()


@router.patch("/{schedule_id}")
def update_schedule(
    schedule_id: str,
    payload: RecurringInvoiceUpdate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.recurring.update_schedule(ctx, schedule_id, payload).to_dict()


@router.delete("/{schedule_id}", status_code=204)
def delete_schedule(
    schedule_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    services.recurring.delete_schedule(ctx, schedule_id)
    return Response(status_code=204)


@router.post("/{schedule_id}/pause")
def pause_schedule(
    schedule_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.recurring.pause_schedule(ctx, schedule_id).to_dict()


@router.post("/{schedule_id}/resume")
def resume_schedule(
    schedule_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.recurring.resume_schedule(ctx, schedule_id).to_dict()
