"""Wiring of the service objects shared by the web app and the CLI."""

import datetime as dt
from dataclasses import dataclass
from typing import Callable, Optional

from agency_billing.config.settings import AppSettings, get_settings
from agency_billing.db.session import Database, get_database
from agency_billing.services.agency_form_service import AgencyFormService
from agency_billing.services.agency_service import AgencyService
from agency_billing.services.email_service import EmailService, InvoiceEmailService
from agency_billing.services.form_template_service import FormTemplateService
from agency_billing.services.invoice_service import InvoiceService
from agency_billing.services.pdf_service import PdfService
from agency_billing.services.recurring_service import RecurringInvoiceService


@dataclass
class ServiceContainer:
    settings: AppSettings
    database: Database
    agencies: AgencyService
    invoices: InvoiceService
    pdfs: PdfService
    email: EmailService
    invoice_emails: InvoiceEmailService
    recurring: RecurringInvoiceService
    templates: FormTemplateService
    forms: AgencyFormService


def build_services(
    settings: Optional[AppSettings] = None,
    database: Optional[Database] = None,
    today: Callable[[], dt.date] = dt.date.today,
    email_service: Optional[EmailService] = None,
    pdf_service: Optional[PdfService] = None,
) -> ServiceContainer:
    """
    Build every service against one database and settings object.

    Args:
        settings: Application settings (defaults to the global settings)
        database: Database (defaults to one for ``settings.database_url``)
        today: Date provider passed to date-dependent services
        email_service: Replacement email transport (tests)
        pdf_service: Replacement PDF service (tests)
    """
    settings = settings or get_settings()
    database = database or get_database(settings.database_url)

    invoices = InvoiceService(database, today=today)
    pdfs = pdf_service or PdfService(invoices, settings=settings)
    email = email_service or EmailService(settings=settings)
    invoice_emails = InvoiceEmailService(
        database, invoices, pdfs, email, settings=settings, today=today
    )

    return ServiceContainer(
        settings=settings,
        database=database,
        agencies=AgencyService(database, settings=settings),
        invoices=invoices,
        pdfs=pdfs,
        email=email,
        invoice_emails=invoice_emails,
        recurring=RecurringInvoiceService(
            database, invoices, email_service=invoice_emails, today=today
        ),
        templates=FormTemplateService(database),
        forms=AgencyFormService(database),
    )
