"""Unit tests for invoice listing and export commands."""

import pandas as pd
import pytest
from click.testing import CliRunner

from agency_billing.cli import cli
from agency_billing.cli.commands import invoices as invoice_commands


@pytest.fixture
def invoke(services):
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(cli, list(args), obj={"services": services})

    return _invoke


class TestListInvoices:
    def test_lists_invoices(self, invoke, agency, draft_invoice):
        result = invoke("list-invoices", "--agency-id", agency.id)

        assert result.exit_code == 0, result.output
        assert "INV-2025-0001" in result.output
        assert "Client Co" in result.output
        assert "Found 1 invoice(s)" in result.output

    def test_status_filter(self, invoke, agency, draft_invoice):
        result = invoke("list-invoices", "--agency-id", agency.id, "--status", "paid")

        assert result.exit_code == 0
        assert "No invoices found." in result.output

    def test_unknown_status_is_rejected(self, invoke, agency):
        result = invoke("list-invoices", "--agency-id", agency.id, "--status", "lost")

        assert result.exit_code == 2

    def test_pages_through_all_invoices(
        self, invoke, services, owner_ctx, agency, invoice_payload, monkeypatch
    ):
        monkeypatch.setattr(invoice_commands, "PAGE_SIZE", 2)
        for _ in range(5):
            services.invoices.create_invoice(owner_ctx, invoice_payload)

        result = invoke("list-invoices", "--agency-id", agency.id)

        assert "Found 5 invoice(s)" in result.output
        assert "INV-2025-0005" in result.output


class TestExportInvoices:
    def test_export_csv(self, invoke, agency, draft_invoice, tmp_path):
        output = tmp_path / "exports" / "invoices.csv"

        result = invoke("export-invoices", "--agency-id", agency.id, "-o", str(output))

        assert result.exit_code == 0, result.output
        assert f"Wrote {output}" in result.output
        df = pd.read_csv(output)
        assert df["invoice_number"].tolist() == ["INV-2025-0001"]
        assert df["total"].tolist() == [1650.0]

    def test_export_aging(self, invoke, agency, tmp_path):
        output = tmp_path / "aging.csv"

        result = invoke(
            "export-invoices", "--agency-id", agency.id, "-o", str(output), "--aging"
        )

        assert result.exit_code == 0, result.output
        df = pd.read_csv(output)
        assert df["bucket"].tolist() == ["current", "1-30", "31-60", "61-90", "90+"]
        assert df["count"].sum() == 0

    def test_output_is_required(self, invoke, agency):
        result = invoke("export-invoices", "--agency-id", agency.id)

        assert result.exit_code == 2
