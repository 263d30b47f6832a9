"""Invoice reporting with pandas."""

from agency_billing.reports.invoice_reports import (
    AGING_BUCKETS,
    INVOICE_COLUMNS,
    aging_report,
    export_invoices_csv,
    invoices_to_dataframe,
    summarize_by_status,
)

__all__ = [
    "AGING_BUCKETS",
    "INVOICE_COLUMNS",
    "aging_report",
    "export_invoices_csv",
    "invoices_to_dataframe",
    "summarize_by_status",
]
