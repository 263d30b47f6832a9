"""Agency email log endpoints under ``/api/email-logs``."""

from typing import Optional

from fastapi import APIRouter, Depends

from agency_billing.models.enums import EmailStatus, EmailType
from agency_billing.models.invoice import EmailLogFilters
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer
from agency_billing.web.auth import get_current_context
from agency_billing.web.dependencies import get_services
from agency_billing.web.routes.invoices import _email_response
from agency_billing.web.serializers import email_log_summary

router = APIRouter(prefix="/api/email-logs", tags=["email"])


@router.get("")
def list_email_logs(
    invoice_id: Optional[str] = None,
    status: Optional[EmailStatus] = None,
    email_type: Optional[EmailType] = None,
    limit: int = 50,
    offset: int = 0,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    filters = EmailLogFilters(
        invoice_id=invoice_id,
        status=status,
        email_type=email_type,
        limit=limit,
        offset=offset,
    )
    entries = services.invoice_emails.list_email_logs(ctx, filters)
    return {"emails": [email_log_summary(entry) for entry in entries]}


@router.post("/{email_log_id}/resend")
def resend_email(
    email_log_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    result = services.invoice_emails.resend_email(ctx, email_log_id)
    return _email_response(result)
