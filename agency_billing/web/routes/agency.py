"""The caller's agency profile under ``/api/agency``."""

from fastapi import APIRouter, Depends

from agency_billing.models.agency import AgencyProfileUpdate
from agency_billing.services.access import AgencyContext, require_agency, require_permission
from agency_billing.services.container import ServiceContainer
from agency_billing.web.auth import get_current_context
from agency_billing.web.dependencies import get_services

router = APIRouter(prefix="/api/agency", tags=["agency"])


@router.get("/profile")
def get_profile(
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    require_permission(ctx, "settings:view")
    return services.agencies.get_profile(require_agency(ctx)).to_dict()


@router.patch("/profile")
def update_profile(
    payload: AgencyProfileUpdate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.agencies.update_profile(ctx, payload).to_dict()
