"""Unit tests for CLI main entry point."""

import pytest
from click.testing import CliRunner

from agency_billing import __version__
from agency_billing.cli import cli


class TestCLIMain:
    """Test suite for CLI main entry point."""

    @pytest.fixture
    def runner(self):
        """Create a Click CLI test runner."""
        return CliRunner()

    def test_cli_group_exists(self, runner):
        """Test that CLI group exists and can be invoked."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Usage:" in result.output

    def test_cli_help_text(self, runner):
        """Test that CLI help text is informative."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Agency Billing CLI" in result.output
        assert "Commands:" in result.output

    def test_cli_version_flag(self, runner):
        """Test that --version flag works."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    @pytest.mark.parametrize(
        "command",
        [
            "init-db",
            "create-agency",
            "run-daily",
            "generate-recurring",
            "mark-overdue",
            "list-invoices",
            "export-invoices",
            "issue-token",
            "templates",
            "serve",
        ],
    )
    def test_cli_registers_command(self, runner, command):
        result = runner.invoke(cli, ["--help"])
        assert command in result.output

    def test_templates_group_lists_subcommands(self, runner):
        result = runner.invoke(cli, ["templates", "--help"])
        assert result.exit_code == 0
        for name in ("list", "preview", "push", "rollback"):
            assert name in result.output

    def test_unknown_command_shows_error(self, runner):
        """Test that unknown commands show helpful error."""
        result = runner.invoke(cli, ["unknown-command"])
        assert result.exit_code != 0
        assert "No such command" in result.output or "Error" in result.output

    def test_debug_flag_is_accepted(self, runner, services):
        result = runner.invoke(
            cli, ["--debug", "mark-overdue", "--date", "2025-01-20"], obj={"services": services}
        )
        assert result.exit_code == 0
        assert "0 invoice(s) marked overdue" in result.output
