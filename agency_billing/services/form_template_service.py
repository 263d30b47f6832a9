"""
Platform form templates managed by super admins.

Agencies copy templates into their own forms. A template's current schema
can later be pushed to every copy that the agency has not customized, and
the last push can be undone once through each form's ``previous_schema``
snapshot.
"""

import datetime as dt
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from agency_billing.db.session import Database
from agency_billing.db.tables import AgencyForm, FormTemplate, utcnow
from agency_billing.errors import ConflictError, NotFoundError
from agency_billing.models.forms import (
    FormTemplateCreate,
    FormTemplateUpdate,
    TemplateOrder,
)
from agency_billing.services.access import AgencyContext, require_super_admin
from agency_billing.services.activity import log_activity
from agency_billing.utils.logging_utils import LogContext

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 255
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase slug with runs of other characters collapsed to ``-``.

    Example:
        >>> slugify("  Client Intake Form (2025)! ")
        'client-intake-form-2025'
    """
    return _NON_ALPHANUMERIC.sub("-", name.lower()).strip("-")[:MAX_SLUG_LENGTH]


@dataclass
class PushResult:
    updated_count: int
    template_id: str
    pushed_at: dt.datetime

    def to_dict(self) -> dict:
        return {
            "updated_count": self.updated_count,
            "template_id": self.template_id,
            "pushed_at": self.pushed_at.isoformat(),
        }


@dataclass
class RollbackResult:
    rolled_back_count: int
    template_id: str

    def to_dict(self) -> dict:
        return {
            "rolled_back_count": self.rolled_back_count,
            "template_id": self.template_id,
        }


def _push_targets(template_id: str):
    return (
        AgencyForm.source_template_id == template_id,
        AgencyForm.is_customized.is_(False),
    )


class FormTemplateService:
    """Super-admin CRUD, push and rollback for form templates.

    Every public method requires a super admin context.
    """

    def __init__(self, database: Database):
        self.db = database

    def _load(self, session: Session, template_id: str) -> FormTemplate:
        template = session.get(FormTemplate, template_id)
        if template is None:
            raise NotFoundError("Template not found")
        return template

    def ensure_unique_slug(
        self, session: Session, slug: str, exclude_id: Optional[str] = None
    ) -> str:
        """Return ``slug`` or the first free ``slug-1``, ``slug-2``, ..."""
        candidate = slug
        counter = 1
        while True:
            stmt = select(FormTemplate.id).where(FormTemplate.slug == candidate)
            if exclude_id:
                stmt = stmt.where(FormTemplate.id != exclude_id)
            if session.scalar(stmt) is None:
                return candidate
            candidate = f"{slug}-{counter}"
            counter += 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_templates(self, ctx: AgencyContext) -> List[FormTemplate]:
        require_super_admin(ctx)
        with self.db.session_scope() as session:
            stmt = select(FormTemplate).order_by(
                FormTemplate.display_order, FormTemplate.name
            )
            return list(session.scalars(stmt).all())

    def get_template(self, ctx: AgencyContext, template_id: str) -> FormTemplate:
        require_super_admin(ctx)
        with self.db.session_scope() as session:
            return self._load(session, template_id)

    def get_push_preview(self, ctx: AgencyContext, template_id: str) -> int:
        """Number of agency forms the next push would update."""
        require_super_admin(ctx)
        with self.db.session_scope() as session:
            self._load(session, template_id)
            return session.scalar(
                select(func.count(AgencyForm.id)).where(*_push_targets(template_id))
            ) or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_template(self, ctx: AgencyContext, data: FormTemplateCreate) -> FormTemplate:
        """Create a template; the slug comes from ``slug`` or the name."""
        require_super_admin(ctx)
        with self.db.session_scope() as session:
            base_slug = data.slug or slugify(data.name)
            template = FormTemplate(
                name=data.name,
                slug=self.ensure_unique_slug(session, base_slug),
                description=data.description or None,
                category=data.category,
                schema=data.schema_,
                ui_config=data.ui_config,
                preview_image_url=data.preview_image_url,
                is_featured=data.is_featured,
                display_order=data.display_order,
                new_until=data.new_until,
                usage_count=0,
            )
            session.add(template)
            session.flush()
            log_activity(
                session,
                ctx,
                "form_template.created",
                "form_template",
                template.id,
                new_values={"name": template.name, "slug": template.slug},
            )
            logger.info(f"Created form template {template.slug}")
            return template

    def update_template(
        self, ctx: AgencyContext, template_id: str, data: FormTemplateUpdate
    ) -> FormTemplate:
        """Partial update.

        Raises:
            NotFoundError: If the template does not exist
            ConflictError: If the new slug belongs to another template
        """
        require_super_admin(ctx)
        changes = data.changed_fields()
        if "schema_" in changes:
            changes["schema"] = changes.pop("schema_")

        with self.db.session_scope() as session:
            template = self._load(session, template_id)

            slug = changes.get("slug")
            if slug:
                conflict = session.scalar(
                    select(FormTemplate.id).where(
                        FormTemplate.slug == slug, FormTemplate.id != template_id
                    )
                )
                if conflict is not None:
                    raise ConflictError("A template with this slug already exists")

            for name, value in changes.items():
                if value is None and name in ("name", "slug", "category", "schema",
                                              "ui_config", "is_featured", "display_order"):
                    continue
                setattr(template, name, value)

            log_activity(
                session,
                ctx,
                "form_template.updated",
                "form_template",
                template.id,
                new_values={"fields": sorted(changes.keys())},
            )
            return template

    def delete_template(self, ctx: AgencyContext, template_id: str) -> None:
        """Delete a template; derived forms keep their content."""
        require_super_admin(ctx)
        with self.db.session_scope() as session:
            template = self._load(session, template_id)
            session.execute(
                update(AgencyForm)
                .where(AgencyForm.source_template_id == template_id)
                .values(source_template_id=None)
                .execution_options(synchronize_session=False)
            )
            log_activity(
                session,
                ctx,
                "form_template.deleted",
                "form_template",
                template.id,
                old_values={"name": template.name, "slug": template.slug},
            )
            session.delete(template)
            logger.info(f"Deleted form template {template.slug}")

    def reorder_templates(self, ctx: AgencyContext, items: List[TemplateOrder]) -> None:
        require_super_admin(ctx)
        with self.db.session_scope() as session:
            for item in items:
                session.execute(
                    update(FormTemplate)
                    .where(FormTemplate.id == item.id)
                    .values(display_order=item.display_order, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )

    def push_template_update(self, ctx: AgencyContext, template_id: str) -> PushResult:
        """
        Copy the template's schema and UI config to every uncustomized copy.

        Each affected form keeps its current schema in ``previous_schema``
        and its version is incremented. Runs as one conditional update so
        forms customized concurrently are never overwritten.
        """
        require_super_admin(ctx)
        with LogContext(template_id=template_id):
            with self.db.session_scope() as session:
                template = self._load(session, template_id)
                result = session.execute(
                    update(AgencyForm)
                    .where(*_push_targets(template_id))
                    .values(
                        previous_schema=AgencyForm.schema,
                        schema=template.schema,
                        ui_config=template.ui_config,
                        version=AgencyForm.version + 1,
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount or 0
                log_activity(
                    session,
                    ctx,
                    "form_template.pushed",
                    "form_template",
                    template_id,
                    new_values={"updated_count": updated},
                )

            logger.info(f"Pushed template to {updated} agency form(s)")
        return PushResult(updated_count=updated, template_id=template_id, pushed_at=utcnow())

    def rollback_template_push(self, ctx: AgencyContext, template_id: str) -> RollbackResult:
        """
        Restore the schema saved by the last push.

        Only forms still holding a snapshot are touched, and the snapshot is
        cleared, so a second rollback changes nothing. The UI config is not
        restored.
        """
        require_super_admin(ctx)
        with LogContext(template_id=template_id):
            with self.db.session_scope() as session:
                result = session.execute(
                    update(AgencyForm)
                    .where(
                        *_push_targets(template_id),
                        AgencyForm.previous_schema.is_not(None),
                    )
                    .values(
                        schema=AgencyForm.previous_schema,
                        previous_schema=None,
                        version=AgencyForm.version + 1,
                        updated_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                rolled_back = result.rowcount or 0
                log_activity(
                    session,
                    ctx,
                    "form_template.rolled_back",
                    "form_template",
                    template_id,
                    new_values={"rolled_back_count": rolled_back},
                )

            logger.info(f"Rolled back {rolled_back} agency form(s)")
        return RollbackResult(rolled_back_count=rolled_back, template_id=template_id)
