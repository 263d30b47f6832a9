"""Unit tests for the ``templates`` command group."""

import pytest
from click.testing import CliRunner

from agency_billing.cli import cli
from agency_billing.models.enums import TemplateCategory
from agency_billing.models.forms import (
    AgencyFormFromTemplate,
    FormTemplateCreate,
    FormTemplateUpdate,
)

SCHEMA_V1 = {"fields": [{"name": "email"}]}
SCHEMA_V2 = {"fields": [{"name": "email"}, {"name": "phone"}]}


@pytest.fixture
def invoke(services):
    runner = CliRunner()

    def _invoke(*args, input=None):
        return runner.invoke(cli, list(args), obj={"services": services}, input=input)

    return _invoke


@pytest.fixture
def template(services, super_admin_ctx):
    return services.templates.create_template(
        super_admin_ctx,
        FormTemplateCreate(
            name="Client Intake", category=TemplateCategory.INTAKE, schema=SCHEMA_V1
        ),
    )


@pytest.fixture
def agency_form(services, owner_ctx, super_admin_ctx, template):
    """An uncustomized copy, followed by a schema change on the template."""
    form = services.forms.create_from_template(
        owner_ctx, AgencyFormFromTemplate(template_id=template.id)
    )
    services.templates.update_template(
        super_admin_ctx, template.id, FormTemplateUpdate(schema=SCHEMA_V2)
    )
    return form


class TestListTemplates:
    def test_empty(self, invoke):
        result = invoke("templates", "list")

        assert result.exit_code == 0
        assert "No templates found." in result.output

    def test_table(self, invoke, template, agency_form):
        result = invoke("templates", "list")

        assert result.exit_code == 0, result.output
        assert "Client Intake" in result.output
        assert "client-intake" in result.output
        assert template.id in result.output


class TestPushCommands:
    def test_preview(self, invoke, template, agency_form):
        result = invoke("templates", "preview", template.id)

        assert result.exit_code == 0
        assert "1 uncustomized form(s) would be updated" in result.output

    def test_push_and_rollback(self, invoke, services, owner_ctx, template, agency_form):
        pushed = invoke("templates", "push", template.id, "--yes")

        assert pushed.exit_code == 0, pushed.output
        assert "Updated 1 form(s)" in pushed.output
        assert services.forms.get_form(owner_ctx, agency_form.id).schema == SCHEMA_V2

        rolled_back = invoke("templates", "rollback", template.id, "--yes")

        assert rolled_back.exit_code == 0, rolled_back.output
        assert "Rolled back 1 form(s)" in rolled_back.output
        assert services.forms.get_form(owner_ctx, agency_form.id).schema == SCHEMA_V1

    def test_push_asks_for_confirmation(self, invoke, services, owner_ctx, template, agency_form):
        result = invoke("templates", "push", template.id, input="n\n")

        assert result.exit_code == 130
        assert "Update 1 agency form(s)?" in result.output
        assert services.forms.get_form(owner_ctx, agency_form.id).schema == SCHEMA_V1

    def test_push_without_copies(self, invoke, template):
        result = invoke("templates", "push", template.id, "--yes")

        assert result.exit_code == 0
        assert "No uncustomized forms use this template" in result.output

    def test_unknown_template(self, invoke):
        result = invoke("templates", "preview", "missing")

        assert result.exit_code == 7
        assert "Not Found" in result.output
