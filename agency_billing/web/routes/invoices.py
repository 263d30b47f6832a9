"""Authenticated invoice endpoints under ``/api/invoices``."""

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Response

from agency_billing.errors import EmailDeliveryError
from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import (
    InvoiceCreate,
    InvoiceEmailRequest,
    InvoiceFilters,
    InvoiceUpdate,
    PaymentRecord,
    StatusChangeReason,
)
from agency_billing.services.access import AgencyContext
from agency_billing.services.container import ServiceContainer
from agency_billing.services.email_service import SendResult
from agency_billing.web.auth import get_current_context
from agency_billing.web.dependencies import get_services
from agency_billing.web.serializers import email_log_summary, invoice_summary, invoice_to_dict

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


def pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="{filename}"',
            "Cache-Control": "private, max-age=60",
        },
    )


def _email_response(result: SendResult) -> dict:
    if not result.success:
        raise EmailDeliveryError(result.error or "Email delivery failed")
    return result.to_dict()


@router.get("")
def list_invoices(
    status: Optional[InvoiceStatus] = None,
    from_date: Optional[dt.date] = None,
    to_date: Optional[dt.date] = None,
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    filters = InvoiceFilters(
        status=status,
        from_date=from_date,
        to_date=to_date,
        search=search,
        limit=limit,
        offset=offset,
    )
    invoices = services.invoices.list_invoices(ctx, filters)
    return {"invoices": [invoice_summary(invoice) for invoice in invoices]}


@router.get("/stats")
def invoice_stats(
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.invoices.get_invoice_stats(ctx).to_dict()


@router.post("", status_code=201)
def create_invoice(
    payload: InvoiceCreate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.create_invoice(ctx, payload))


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.get_invoice(ctx, invoice_id))


@router.patch("/{invoice_id}")
def update_invoice(
    invoice_id: str,
    payload: InvoiceUpdate,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.update_invoice(ctx, invoice_id, payload))


@router.delete("/{invoice_id}", status_code=204)
def delete_invoice(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    services.invoices.delete_invoice(ctx, invoice_id)
    return Response(status_code=204)


@router.post("/{invoice_id}/duplicate", status_code=201)
def duplicate_invoice(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.duplicate_invoice(ctx, invoice_id))


@router.post("/{invoice_id}/send")
def send_invoice(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.send_invoice(ctx, invoice_id))


@router.post("/{invoice_id}/payments")
def record_payment(
    invoice_id: str,
    payload: PaymentRecord,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.record_payment(ctx, invoice_id, payload))


@router.post("/{invoice_id}/cancel")
def cancel_invoice(
    invoice_id: str,
    payload: Optional[StatusChangeReason] = None,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    reason = payload.reason if payload else None
    return invoice_to_dict(services.invoices.cancel_invoice(ctx, invoice_id, reason))


@router.post("/{invoice_id}/refund")
def refund_invoice(
    invoice_id: str,
    payload: Optional[StatusChangeReason] = None,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    reason = payload.reason if payload else None
    return invoice_to_dict(services.invoices.refund_invoice(ctx, invoice_id, reason))


@router.post("/{invoice_id}/recalculate")
def recalculate_invoice(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    return invoice_to_dict(services.invoices.recalculate_totals(ctx, invoice_id))


@router.get("/{invoice_id}/pdf")
def download_pdf(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    content, filename = services.pdfs.generate_invoice_pdf(ctx, invoice_id)
    return pdf_response(content, filename)


@router.post("/{invoice_id}/email")
def email_invoice(
    invoice_id: str,
    payload: Optional[InvoiceEmailRequest] = None,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    message = payload.custom_message if payload else None
    result = services.invoice_emails.send_invoice_email(ctx, invoice_id, message)
    return _email_response(result)


@router.post("/{invoice_id}/reminder")
def send_reminder(
    invoice_id: str,
    payload: Optional[InvoiceEmailRequest] = None,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    message = payload.custom_message if payload else None
    result = services.invoice_emails.send_reminder(ctx, invoice_id, message)
    return _email_response(result)


@router.get("/{invoice_id}/emails")
def invoice_emails(
    invoice_id: str,
    ctx: AgencyContext = Depends(get_current_context),
    services: ServiceContainer = Depends(get_services),
):
    entries = services.invoice_emails.get_invoice_email_logs(ctx, invoice_id)
    return {"emails": [email_log_summary(entry) for entry in entries]}
