"""Calculator modules for invoices and recurring schedules."""

from agency_billing.calculators.invoice_calculator import (
    InvoiceTotals,
    calculate_due_date,
    calculate_invoice_totals,
    calculate_line_amount,
    days_overdue,
    effective_status,
    is_overdue,
    round_money,
)
from agency_billing.calculators.schedule_calculator import (
    add_months,
    advance_date,
    due_occurrences,
    first_run_on_or_after,
    is_schedule_finished,
)

__all__ = [
    # invoice_calculator
    "InvoiceTotals",
    "calculate_due_date",
    "calculate_invoice_totals",
    "calculate_line_amount",
    "days_overdue",
    "effective_status",
    "is_overdue",
    "round_money",
    # schedule_calculator
    "add_months",
    "advance_date",
    "due_occurrences",
    "first_run_on_or_after",
    "is_schedule_finished",
]
