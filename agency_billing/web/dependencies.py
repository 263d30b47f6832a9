"""Request-scoped dependencies shared by the routers."""

from fastapi import Request

from agency_billing.services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
