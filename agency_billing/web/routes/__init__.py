"""API routers, one per area."""

from agency_billing.web.routes import (
    agency,
    email_logs,
    form_templates,
    forms,
    invoices,
    public,
    recurring,
)

ROUTERS = [
    invoices.router,
    email_logs.router,
    public.router,
    recurring.router,
    form_templates.router,
    forms.router,
    agency.router,
]
