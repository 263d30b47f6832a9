"""Agency-owned forms, usually copied from a platform template."""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agency_billing.db.session import Database
from agency_billing.db.tables import AgencyForm, FormTemplate, utcnow
from agency_billing.errors import ConflictError, NotFoundError
from agency_billing.models.enums import FormType, TemplateCategory
from agency_billing.models.forms import AgencyFormFromTemplate, AgencyFormUpdate
from agency_billing.services.access import (
    AgencyContext,
    require_agency,
    require_permission,
)
from agency_billing.services.activity import log_activity

logger = logging.getLogger(__name__)

CATEGORY_FORM_TYPES = {
    TemplateCategory.QUESTIONNAIRE: FormType.QUESTIONNAIRE,
    TemplateCategory.CONSULTATION: FormType.CONSULTATION,
    TemplateCategory.FEEDBACK: FormType.FEEDBACK,
    TemplateCategory.INTAKE: FormType.INTAKE,
    TemplateCategory.GENERAL: FormType.CUSTOM,
}

DEFAULT_UI_CONFIG = {
    "layout": "single-column",
    "showProgressBar": True,
    "showStepNumbers": True,
    "submitButtonText": "Submit",
    "successMessage": "Thank you for your submission!",
}

SLUG_CONFLICT = "A form with this slug already exists"


class AgencyFormService:
    def __init__(self, database: Database):
        self.db = database

    def _load(self, session: Session, ctx: AgencyContext, form_id: str) -> AgencyForm:
        agency_id = require_agency(ctx)
        form = session.scalar(
            select(AgencyForm).where(
                AgencyForm.id == form_id, AgencyForm.agency_id == agency_id
            )
        )
        if form is None:
            raise NotFoundError("Form not found")
        return form

    def _slug_taken(
        self, session: Session, agency_id: str, slug: str, exclude_id: Optional[str] = None
    ) -> bool:
        stmt = select(AgencyForm.id).where(
            AgencyForm.agency_id == agency_id, AgencyForm.slug == slug
        )
        if exclude_id:
            stmt = stmt.where(AgencyForm.id != exclude_id)
        return session.scalar(stmt) is not None

    def _unique_slug(self, session: Session, agency_id: str, base_slug: str) -> str:
        candidate = base_slug
        counter = 1
        while self._slug_taken(session, agency_id, candidate):
            candidate = f"{base_slug}-{counter}"
            counter += 1
        return candidate

    def _clear_defaults(self, session: Session, agency_id: str, form_type: FormType) -> None:
        session.execute(
            update(AgencyForm)
            .where(AgencyForm.agency_id == agency_id, AgencyForm.form_type == form_type)
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    def list_forms(
        self,
        ctx: AgencyContext,
        form_type: Optional[FormType] = None,
        active_only: bool = False,
    ) -> List[AgencyForm]:
        """The agency's forms, most recently updated first."""
        require_permission(ctx, "form:view")
        agency_id = require_agency(ctx)
        with self.db.session_scope() as session:
            stmt = select(AgencyForm).where(AgencyForm.agency_id == agency_id)
            if form_type is not None:
                stmt = stmt.where(AgencyForm.form_type == form_type)
            if active_only:
                stmt = stmt.where(AgencyForm.is_active.is_(True))
            stmt = stmt.order_by(AgencyForm.updated_at.desc(), AgencyForm.name)
            return list(session.scalars(stmt).all())

    def get_form(self, ctx: AgencyContext, form_id: str) -> AgencyForm:
        require_permission(ctx, "form:view")
        with self.db.session_scope() as session:
            return self._load(session, ctx, form_id)

    def create_from_template(
        self, ctx: AgencyContext, data: AgencyFormFromTemplate
    ) -> AgencyForm:
        """
        Copy a template into the agency's forms.

        The copy is activated and made the default when the agency has no
        active form of that type yet. The template's usage count goes up by
        one.

        Raises:
            NotFoundError: If the template does not exist
        """
        require_permission(ctx, "form:create")
        agency_id = require_agency(ctx)

        with self.db.session_scope() as session:
            template = session.get(FormTemplate, data.template_id)
            if template is None:
                raise NotFoundError("Template not found")

            form_type = data.form_type or CATEGORY_FORM_TYPES.get(
                template.category, FormType.CUSTOM
            )
            has_active = session.scalar(
                select(AgencyForm.id).where(
                    AgencyForm.agency_id == agency_id,
                    AgencyForm.form_type == form_type,
                    AgencyForm.is_active.is_(True),
                )
            )
            auto_activate = has_active is None

            form = AgencyForm(
                agency_id=agency_id,
                name=data.name or template.name,
                slug=self._unique_slug(session, agency_id, data.slug or template.slug),
                description=template.description,
                form_type=form_type,
                schema=template.schema,
                ui_config=template.ui_config or dict(DEFAULT_UI_CONFIG),
                is_active=auto_activate,
                is_default=auto_activate,
                requires_auth=False,
                version=1,
                source_template_id=template.id,
                is_customized=False,
                created_by=ctx.user_id,
            )
            session.add(form)
            session.execute(
                update(FormTemplate)
                .where(FormTemplate.id == template.id)
                .values(usage_count=FormTemplate.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            session.flush()

            log_activity(
                session,
                ctx,
                "form.created_from_template",
                "agency_form",
                form.id,
                new_values={"template_id": template.id, "slug": form.slug},
            )
            logger.info(f"Created form {form.slug} from template {template.slug}")
            return form

    def update_form(
        self, ctx: AgencyContext, form_id: str, data: AgencyFormUpdate
    ) -> AgencyForm:
        """
        Partial update of a form.

        A schema change bumps the version and marks a template-derived form
        as customized so later template pushes skip it.

        Raises:
            ConflictError: If the new slug is used by another form
        """
        require_permission(ctx, "form:edit")
        changes = data.changed_fields()
        schema = changes.pop("schema_", None)

        with self.db.session_scope() as session:
            form = self._load(session, ctx, form_id)

            slug = changes.get("slug")
            if slug and slug != form.slug and self._slug_taken(
                session, form.agency_id, slug, exclude_id=form.id
            ):
                raise ConflictError(SLUG_CONFLICT)

            if changes.get("is_default"):
                self._clear_defaults(session, form.agency_id, form.form_type)

            for name, value in changes.items():
                if value is None and name in ("name", "slug", "ui_config", "is_active",
                                              "is_default", "requires_auth"):
                    continue
                setattr(form, name, value)

            if schema is not None:
                form.schema = schema
                form.version = form.version + 1
                if form.source_template_id:
                    form.is_customized = True
            form.updated_at = utcnow()

            log_activity(
                session,
                ctx,
                "form.updated",
                "agency_form",
                form.id,
                new_values={
                    "fields": sorted(data.changed_fields().keys()),
                    "version": form.version,
                    "is_customized": form.is_customized,
                },
            )
            return form

    def delete_form(self, ctx: AgencyContext, form_id: str) -> None:
        """Delete a form; an uncustomized copy gives back its template usage."""
        require_permission(ctx, "form:delete")
        with self.db.session_scope() as session:
            form = self._load(session, ctx, form_id)
            source_id = form.source_template_id
            customized = form.is_customized
            session.delete(form)

            if source_id and not customized:
                template = session.get(FormTemplate, source_id)
                if template is not None:
                    template.usage_count = max(0, template.usage_count - 1)

            log_activity(
                session,
                ctx,
                "form.deleted",
                "agency_form",
                form_id,
                old_values={"slug": form.slug, "source_template_id": source_id},
            )
