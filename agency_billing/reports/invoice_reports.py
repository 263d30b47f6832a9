"""Invoice reports: status summaries, receivables aging and CSV export.

Reports work on a flat pandas DataFrame built from invoice rows, one row
per invoice. Money columns are floats rounded to cents so the frames sum
and export cleanly.
"""

import datetime as dt
import logging
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd

from agency_billing.db.tables import Invoice
from agency_billing.models.enums import InvoiceStatus

logger = logging.getLogger(__name__)

INVOICE_COLUMNS: List[str] = [
    "invoice_number",
    "status",
    "client_business_name",
    "client_email",
    "issue_date",
    "due_date",
    "subtotal",
    "discount_amount",
    "gst_amount",
    "total",
    "paid_at",
]

MONEY_COLUMNS = ["subtotal", "discount_amount", "gst_amount", "total"]

AGING_BUCKETS = ["current", "1-30", "31-60", "61-90", "90+"]
_AGING_BINS = [float("-inf"), 0, 30, 60, 90, float("inf")]

# Invoices that still represent money owed
OUTSTANDING_STATUSES = [
    InvoiceStatus.SENT.value,
    InvoiceStatus.VIEWED.value,
    InvoiceStatus.OVERDUE.value,
]


def invoices_to_dataframe(invoices: Iterable[Invoice]) -> pd.DataFrame:
    """Flatten invoice rows into a DataFrame with ``INVOICE_COLUMNS``.

    Args:
        invoices: Invoice ORM rows

    Returns:
        DataFrame (empty, with the expected columns, when there are no rows)

    Example:
        >>> df = invoices_to_dataframe([])
        >>> list(df.columns) == INVOICE_COLUMNS
        True
    """
    records = []
    for invoice in invoices:
        records.append(
            {
                "invoice_number": invoice.invoice_number,
                "status": InvoiceStatus(invoice.status).value,
                "client_business_name": invoice.client_business_name,
                "client_email": invoice.client_email,
                "issue_date": invoice.issue_date,
                "due_date": invoice.due_date,
                "subtotal": invoice.subtotal,
                "discount_amount": invoice.discount_amount,
                "gst_amount": invoice.gst_amount,
                "total": invoice.total,
                "paid_at": invoice.paid_at,
            }
        )

    df = pd.DataFrame(records, columns=INVOICE_COLUMNS)
    for column in MONEY_COLUMNS:
        df[column] = df[column].astype(float).round(2)
    return df


def summarize_by_status(df: pd.DataFrame) -> pd.DataFrame:
    """Count and total invoices per status.

    Returns:
        DataFrame with columns ``status``, ``count``, ``total`` sorted by
        status
    """
    if df.empty:
        return pd.DataFrame(columns=["status", "count", "total"])

    summary = (
        df.groupby("status")
        .agg(count=("invoice_number", "count"), total=("total", "sum"))
        .reset_index()
        .sort_values("status")
        .reset_index(drop=True)
    )
    summary["total"] = summary["total"].round(2)
    return summary


def aging_report(df: pd.DataFrame, today: dt.date) -> pd.DataFrame:
    """Bucket outstanding invoices by days past due.

    Only sent, viewed and overdue invoices are included. An invoice due
    today or later is ``current``; the other buckets are 1-30, 31-60, 61-90
    and 90+ days past due.

    Args:
        df: Frame produced by ``invoices_to_dataframe``
        today: Reference date

    Returns:
        DataFrame with one row per bucket (``bucket``, ``count``, ``total``),
        in bucket order, including empty buckets
    """
    outstanding = df[df["status"].isin(OUTSTANDING_STATUSES)].copy()

    if outstanding.empty:
        return pd.DataFrame(
            {"bucket": AGING_BUCKETS, "count": [0] * 5, "total": [0.0] * 5}
        )

    outstanding["days_past_due"] = [
        (today - due).days for due in outstanding["due_date"]
    ]
    outstanding["bucket"] = pd.cut(
        outstanding["days_past_due"], bins=_AGING_BINS, labels=AGING_BUCKETS
    )

    report = (
        outstanding.groupby("bucket", observed=False)
        .agg(count=("invoice_number", "count"), total=("total", "sum"))
        .reset_index()
    )
    report["bucket"] = report["bucket"].astype(str)
    report["count"] = report["count"].astype(int)
    report["total"] = report["total"].astype(float).round(2)
    logger.debug(f"Aging report over {len(outstanding)} outstanding invoice(s)")
    return report


def export_invoices_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write a report frame to CSV and return the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} row(s) to {path}")
    return path
