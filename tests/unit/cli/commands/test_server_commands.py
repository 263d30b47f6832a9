"""Unit tests for ``issue-token`` and ``serve``."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from agency_billing.cli import cli
from agency_billing.models.enums import AgencyRole
from agency_billing.web.auth import context_from_payload, decode_access_token


@pytest.fixture
def invoke(services):
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(cli, list(args), obj={"services": services})

    return _invoke


class TestIssueToken:
    def test_owner_token(self, invoke, test_settings):
        result = invoke(
            "issue-token", "--user-id", "user-1", "--agency-id", "agency-1", "--role", "owner"
        )

        assert result.exit_code == 0, result.output
        ctx = context_from_payload(decode_access_token(test_settings, result.output.strip()))
        assert ctx.user_id == "user-1"
        assert ctx.agency_id == "agency-1"
        assert ctx.role == AgencyRole.OWNER
        assert ctx.is_super_admin is False

    def test_super_admin_token(self, invoke, test_settings):
        result = invoke("issue-token", "--user-id", "platform-admin", "--super-admin")

        payload = decode_access_token(test_settings, result.output.strip())
        assert payload["super_admin"] is True
        assert payload["agency_id"] is None
        assert payload["role"] == "member"

    def test_unknown_role(self, invoke):
        result = invoke("issue-token", "--user-id", "user-1", "--role", "intern")

        assert result.exit_code == 2


def test_serve_runs_uvicorn(invoke):
    with patch("agency_billing.cli.commands.server.uvicorn.run") as run:
        result = invoke("serve", "--port", "9000")

    assert result.exit_code == 0, result.output
    assert "Serving on http://127.0.0.1:9000" in result.output
    _, kwargs = run.call_args
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9000
