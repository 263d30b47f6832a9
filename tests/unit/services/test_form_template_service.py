"""
Unit tests for super-admin form templates: CRUD, push and rollback.
"""

import pytest
from sqlalchemy import select

from agency_billing.db.tables import ActivityLog, AgencyForm
from agency_billing.errors import ConflictError, NotFoundError, PermissionDeniedError
from agency_billing.models.agency import AgencyCreate
from agency_billing.models.enums import AgencyRole, TemplateCategory
from agency_billing.models.forms import (
    AgencyFormFromTemplate,
    AgencyFormUpdate,
    FormTemplateCreate,
    FormTemplateUpdate,
    TemplateOrder,
)
from agency_billing.services.access import AgencyContext
from agency_billing.services.form_template_service import slugify

SCHEMA_V1 = {"fields": [{"name": "email", "type": "email"}]}
SCHEMA_V2 = {"fields": [{"name": "email", "type": "email"}, {"name": "budget", "type": "number"}]}


@pytest.fixture
def template(services, super_admin_ctx):
    return services.templates.create_template(
        super_admin_ctx,
        FormTemplateCreate(
            name="Client Intake",
            category=TemplateCategory.INTAKE,
            schema=SCHEMA_V1,
            ui_config={"layout": "single-column"},
        ),
    )


@pytest.fixture
def second_agency_ctx(services) -> AgencyContext:
    agency = services.agencies.create_agency(
        AgencyCreate(name="Beta Digital", email="hello@beta.example.com")
    )
    return AgencyContext(agency_id=agency.id, user_id="user-beta", role=AgencyRole.OWNER)


def copy_template(services, ctx, template):
    return services.forms.create_from_template(
        ctx, AgencyFormFromTemplate(template_id=template.id)
    )


def load_form(database, form_id) -> AgencyForm:
    with database.session_scope() as session:
        return session.get(AgencyForm, form_id)


class TestSlugify:
    @pytest.mark.parametrize(
        "name,slug",
        [
            ("Client Intake", "client-intake"),
            ("  Project Feedback (v2)! ", "project-feedback-v2"),
            ("Déjà vu", "d-j-vu"),
        ],
    )
    def test_slugify(self, name, slug):
        assert slugify(name) == slug


class TestTemplateCrud:
    """Test super-admin template management."""

    def test_create_template(self, template):
        assert template.slug == "client-intake"
        assert template.schema == SCHEMA_V1
        assert template.category == TemplateCategory.INTAKE
        assert template.usage_count == 0

    def test_duplicate_slug_gets_suffix(self, services, super_admin_ctx, template):
        first = services.templates.create_template(
            super_admin_ctx, FormTemplateCreate(name="Client Intake")
        )
        second = services.templates.create_template(
            super_admin_ctx, FormTemplateCreate(name="Client  Intake!")
        )

        assert first.slug == "client-intake-1"
        assert second.slug == "client-intake-2"

    def test_explicit_slug(self, services, super_admin_ctx):
        template = services.templates.create_template(
            super_admin_ctx, FormTemplateCreate(name="Kickoff", slug="project-kickoff")
        )

        assert template.slug == "project-kickoff"

    def test_requires_super_admin(self, services, owner_ctx):
        with pytest.raises(PermissionDeniedError, match="Super admin access required"):
            services.templates.create_template(owner_ctx, FormTemplateCreate(name="Nope"))

        with pytest.raises(PermissionDeniedError):
            services.templates.list_templates(owner_ctx)

    def test_get_missing_template(self, services, super_admin_ctx):
        with pytest.raises(NotFoundError, match="Template not found"):
            services.templates.get_template(super_admin_ctx, "missing")

    def test_list_orders_by_display_order_then_name(self, services, super_admin_ctx):
        for name, order in [("Zeta", 0), ("Alpha", 1), ("Beta", 0)]:
            services.templates.create_template(
                super_admin_ctx, FormTemplateCreate(name=name, display_order=order)
            )

        names = [t.name for t in services.templates.list_templates(super_admin_ctx)]

        assert names == ["Beta", "Zeta", "Alpha"]

    def test_update_template(self, services, super_admin_ctx, template):
        updated = services.templates.update_template(
            super_admin_ctx,
            template.id,
            FormTemplateUpdate(name="Client Intake v2", schema=SCHEMA_V2, is_featured=True),
        )

        assert updated.name == "Client Intake v2"
        assert updated.schema == SCHEMA_V2
        assert updated.is_featured is True
        assert updated.slug == "client-intake"

    def test_update_slug_conflict(self, services, super_admin_ctx, template):
        other = services.templates.create_template(
            super_admin_ctx, FormTemplateCreate(name="Feedback")
        )

        with pytest.raises(ConflictError, match="slug already exists"):
            services.templates.update_template(
                super_admin_ctx, other.id, FormTemplateUpdate(slug="client-intake")
            )

    def test_update_keeping_own_slug(self, services, super_admin_ctx, template):
        updated = services.templates.update_template(
            super_admin_ctx, template.id, FormTemplateUpdate(slug="client-intake")
        )

        assert updated.slug == "client-intake"

    def test_reorder(self, services, super_admin_ctx, template):
        other = services.templates.create_template(
            super_admin_ctx, FormTemplateCreate(name="Feedback")
        )

        services.templates.reorder_templates(
            super_admin_ctx,
            [
                TemplateOrder(id=template.id, display_order=2),
                TemplateOrder(id=other.id, display_order=1),
            ],
        )

        names = [t.name for t in services.templates.list_templates(super_admin_ctx)]
        assert names == ["Feedback", "Client Intake"]

    def test_delete_keeps_agency_copies(
        self, services, database, super_admin_ctx, owner_ctx, template
    ):
        form = copy_template(services, owner_ctx, template)

        services.templates.delete_template(super_admin_ctx, template.id)

        with pytest.raises(NotFoundError):
            services.templates.get_template(super_admin_ctx, template.id)
        stored = load_form(database, form.id)
        assert stored.source_template_id is None
        assert stored.schema == SCHEMA_V1


class TestUsageCount:
    def test_copy_increments_usage(
        self, services, super_admin_ctx, owner_ctx, second_agency_ctx, template
    ):
        copy_template(services, owner_ctx, template)
        copy_template(services, second_agency_ctx, template)

        assert services.templates.get_template(super_admin_ctx, template.id).usage_count == 2

    def test_deleting_copy_decrements_usage(
        self, services, super_admin_ctx, owner_ctx, template
    ):
        form = copy_template(services, owner_ctx, template)

        services.forms.delete_form(owner_ctx, form.id)

        assert services.templates.get_template(super_admin_ctx, template.id).usage_count == 0


class TestPushAndRollback:
    """Test pushing template changes to agency copies and undoing the push."""

    @pytest.fixture
    def copies(self, services, super_admin_ctx, owner_ctx, second_agency_ctx, template):
        """One untouched copy and one customized copy of the template."""
        untouched = copy_template(services, owner_ctx, template)
        customized = copy_template(services, second_agency_ctx, template)
        services.forms.update_form(
            second_agency_ctx,
            customized.id,
            AgencyFormUpdate(schema={"fields": [{"name": "custom"}]}),
        )
        services.templates.update_template(
            super_admin_ctx,
            template.id,
            FormTemplateUpdate(schema=SCHEMA_V2, ui_config={"layout": "two-column"}),
        )
        return untouched, customized

    def test_push_preview(self, services, super_admin_ctx, template, copies):
        assert services.templates.get_push_preview(super_admin_ctx, template.id) == 1

    def test_push_updates_uncustomized_copies(
        self, services, database, super_admin_ctx, template, copies
    ):
        untouched, customized = copies

        result = services.templates.push_template_update(super_admin_ctx, template.id)

        assert result.updated_count == 1
        assert result.template_id == template.id

        pushed = load_form(database, untouched.id)
        assert pushed.schema == SCHEMA_V2
        assert pushed.previous_schema == SCHEMA_V1
        assert pushed.ui_config == {"layout": "two-column"}
        assert pushed.version == 2
        assert pushed.is_customized is False

        skipped = load_form(database, customized.id)
        assert skipped.schema == {"fields": [{"name": "custom"}]}
        assert skipped.previous_schema is None

    def test_push_is_logged(self, services, database, super_admin_ctx, template, copies):
        services.templates.push_template_update(super_admin_ctx, template.id)

        with database.session_scope() as session:
            entry = session.scalar(
                select(ActivityLog).where(ActivityLog.action == "form_template.pushed")
            )
        assert entry.entity_id == template.id
        assert entry.new_values == {"updated_count": 1}
        assert entry.user_id == "platform-admin"

    def test_push_missing_template(self, services, super_admin_ctx):
        with pytest.raises(NotFoundError):
            services.templates.push_template_update(super_admin_ctx, "missing")

    def test_rollback_restores_previous_schema(
        self, services, database, super_admin_ctx, template, copies
    ):
        untouched, _ = copies
        services.templates.push_template_update(super_admin_ctx, template.id)

        result = services.templates.rollback_template_push(super_admin_ctx, template.id)

        assert result.rolled_back_count == 1
        restored = load_form(database, untouched.id)
        assert restored.schema == SCHEMA_V1
        assert restored.previous_schema is None
        assert restored.version == 3
        assert restored.ui_config == {"layout": "two-column"}

    def test_rollback_is_single_level(self, services, super_admin_ctx, template, copies):
        services.templates.push_template_update(super_admin_ctx, template.id)
        services.templates.rollback_template_push(super_admin_ctx, template.id)

        again = services.templates.rollback_template_push(super_admin_ctx, template.id)

        assert again.rolled_back_count == 0

    def test_rollback_without_push(self, services, super_admin_ctx, template, copies):
        result = services.templates.rollback_template_push(super_admin_ctx, template.id)

        assert result.rolled_back_count == 0

    def test_customized_after_push_is_not_rolled_back(
        self, services, database, super_admin_ctx, owner_ctx, template, copies
    ):
        untouched, _ = copies
        services.templates.push_template_update(super_admin_ctx, template.id)
        services.forms.update_form(
            owner_ctx, untouched.id, AgencyFormUpdate(schema={"fields": []})
        )

        result = services.templates.rollback_template_push(super_admin_ctx, template.id)

        assert result.rolled_back_count == 0
        assert load_form(database, untouched.id).schema == {"fields": []}

    def test_result_to_dict(self, services, super_admin_ctx, template, copies):
        data = services.templates.push_template_update(super_admin_ctx, template.id).to_dict()

        assert data["updated_count"] == 1
        assert isinstance(data["pushed_at"], str)