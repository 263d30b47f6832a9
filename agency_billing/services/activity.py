"""Audit trail of state-changing operations."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from agency_billing.db.tables import ActivityLog
from agency_billing.services.access import AgencyContext
from agency_billing.utils.logging_utils import sanitize_sensitive_data

logger = logging.getLogger(__name__)


def log_activity(
    session: Session,
    ctx: Optional[AgencyContext],
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> ActivityLog:
    """Record an activity row in the caller's transaction.

    Args:
        session: Open session; the row commits or rolls back with the change
        ctx: Acting context (``None`` for system jobs)
        action: Dotted action name, e.g. ``invoice.payment_recorded``
        entity_type: ``invoice``, ``form_template``, ...
        entity_id: Id of the affected record
        old_values: Relevant values before the change
        new_values: Relevant values after the change
    """
    entry = ActivityLog(
        agency_id=ctx.agency_id if ctx else None,
        user_id=ctx.user_id if ctx else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_values=sanitize_sensitive_data(old_values) if old_values else None,
        new_values=sanitize_sensitive_data(new_values) if new_values else None,
    )
    session.add(entry)
    logger.debug(
        f"Activity {action} on {entity_type} {entity_id}",
        extra={"action": action, "entity_id": entity_id},
    )
    return entry
