"""Unauthenticated share-link endpoints: ``/i/{slug}`` and its PDF."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse

from agency_billing.services.container import ServiceContainer
from agency_billing.web.dependencies import get_services
from agency_billing.web.routes.invoices import pdf_response
from agency_billing.web.serializers import public_invoice_to_dict

router = APIRouter(prefix="/i", tags=["public"])

PUBLIC_CACHE = {"Cache-Control": "private, max-age=60"}


@router.get("/{slug}")
def view_invoice(
    slug: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
):
    """
    Public invoice page.

    Every request counts as a view; the first view of a sent invoice marks
    it viewed. Clients asking for ``application/json`` get the invoice data
    instead of the rendered page.
    """
    document = services.invoices.record_view(slug)
    if "application/json" in request.headers.get("accept", ""):
        return JSONResponse(public_invoice_to_dict(document), headers=PUBLIC_CACHE)

    html = services.pdfs.render_invoice_html(document)
    return HTMLResponse(html, headers=PUBLIC_CACHE)


@router.get("/{slug}/pdf")
def download_public_pdf(slug: str, services: ServiceContainer = Depends(get_services)):
    content, filename = services.pdfs.generate_public_pdf(slug)
    return pdf_response(content, filename)
