"""Invoice numbers and public share slugs."""

import datetime as dt
import logging
import secrets
import string
import time

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agency_billing.db.tables import AgencyProfile, Invoice, utcnow
from agency_billing.errors import NotFoundError

logger = logging.getLogger(__name__)

SLUG_ALPHABET = string.ascii_letters + string.digits + "_-"
SLUG_LENGTH = 12
SLUG_ATTEMPTS = 10
DEFAULT_PREFIX = "INV"


def format_invoice_number(prefix: str, year: int, number: int) -> str:
    """Format an invoice number as ``PREFIX-YYYY-NNNN``.

    Example:
        >>> format_invoice_number("INV", 2025, 7)
        'INV-2025-0007'
    """
    return f"{prefix or DEFAULT_PREFIX}-{year}-{number:04d}"


def next_invoice_number(
    session: Session, agency_id: str, issue_date: dt.date
) -> str:
    """Allocate the agency's next invoice number.

    The counter is incremented with a single ``UPDATE ... RETURNING`` so
    concurrent requests can never receive the same number.

    Raises:
        NotFoundError: If the agency has no profile
    """
    stmt = (
        update(AgencyProfile)
        .where(AgencyProfile.agency_id == agency_id)
        .values(
            next_invoice_number=AgencyProfile.next_invoice_number + 1,
            updated_at=utcnow(),
        )
        .returning(AgencyProfile.next_invoice_number, AgencyProfile.invoice_prefix)
        .execution_options(synchronize_session=False)
    )
    row = session.execute(stmt).first()
    if row is None:
        raise NotFoundError(f"Agency profile not found for agency {agency_id}")

    counter, prefix = row
    return format_invoice_number(prefix, issue_date.year, counter - 1)


def random_slug(length: int = SLUG_LENGTH) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def generate_unique_slug(session: Session) -> str:
    """Generate an unguessable public slug not used by any invoice.

    Tries random 12-character tokens up to 10 times, then falls back to a
    timestamp-based slug.
    """
    for _ in range(SLUG_ATTEMPTS):
        slug = random_slug()
        exists = session.scalar(select(Invoice.id).where(Invoice.slug == slug))
        if exists is None:
            return slug

    logger.warning("Slug collisions exhausted retries; using timestamp slug")
    return f"inv-{int(time.time() * 1000)}-{random_slug(6)}"
