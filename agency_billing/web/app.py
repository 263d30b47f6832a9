"""
FastAPI application factory.

Features:
- Authenticated JSON API for invoices, recurring schedules, agency forms
  and the agency profile
- Super admin API for form templates
- Public share links (``/i/{slug}``) with HTML, JSON and PDF views
- Domain errors mapped to ``{"error": message}`` responses
"""

import logging
from typing import Optional

import pydantic
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agency_billing import __version__
from agency_billing.errors import (
    AgencyBillingError,
    ConflictError,
    EmailDeliveryError,
    InvalidStateError,
    InvoiceValidationError,
    NotFoundError,
    PdfGenerationError,
    PermissionDeniedError,
)
from agency_billing.services.container import ServiceContainer, build_services
from agency_billing.web.routes import ROUTERS

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    PermissionDeniedError: 403,
    ConflictError: 409,
    InvalidStateError: 400,
    InvoiceValidationError: 422,
    PdfGenerationError: 502,
    EmailDeliveryError: 502,
}


def status_for(error: AgencyBillingError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


async def handle_domain_error(request: Request, exc: AgencyBillingError) -> JSONResponse:
    status = status_for(exc)
    body = {"error": exc.message}
    if isinstance(exc, InvoiceValidationError) and exc.report is not None:
        body["validation"] = exc.report.to_dict()

    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status}: {exc.message}")
    return JSONResponse(status_code=status, content=body)


async def handle_payload_error(
    request: Request, exc: pydantic.ValidationError
) -> JSONResponse:
    details = [
        {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422, content={"error": "Invalid request", "details": details}
    )


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Pre-built services (tests pass one bound to an in-memory
            database); defaults to ``build_services()``

    Returns:
        Configured FastAPI application

    Example:
        >>> app = create_app()
        >>> app.state.services.settings.environment
        'development'
    """
    services = services or build_services()

    app = FastAPI(title="Agency Billing API", version=__version__)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AgencyBillingError, handle_domain_error)
    app.add_exception_handler(pydantic.ValidationError, handle_payload_error)

    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "healthy", "version": __version__}

    logger.info(f"API ready ({services.settings.environment})")
    return app
