"""Date arithmetic for recurring invoice schedules."""

import calendar
import datetime as dt
from typing import List, Optional

from agency_billing.models.enums import RecurringFrequency

FIXED_STEP_DAYS = {
    RecurringFrequency.WEEKLY: 7,
    RecurringFrequency.FORTNIGHTLY: 14,
}

MONTH_STEPS = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.YEARLY: 12,
}

# Upper bound on catch-up occurrences generated in one run
MAX_CATCH_UP = 366


def add_months(value: dt.date, months: int, anchor_day: Optional[int] = None) -> dt.date:
    """Add calendar months, clamping to the last day of shorter months.

    Args:
        value: Starting date
        months: Number of months to add
        anchor_day: Preferred day of month (defaults to ``value.day``). Keeping
            the original anchor means 31 Jan -> 28 Feb -> 31 Mar rather than
            drifting to the 28th.

    Example:
        >>> add_months(dt.date(2024, 1, 31), 1)
        datetime.date(2024, 2, 29)
        >>> add_months(dt.date(2024, 2, 29), 1, anchor_day=31)
        datetime.date(2024, 3, 31)
    """
    day = anchor_day or value.day
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day, last_day))


def advance_date(
    current: dt.date, frequency: RecurringFrequency, anchor_day: Optional[int] = None
) -> dt.date:
    """Return the next run date after ``current`` for a frequency."""
    frequency = RecurringFrequency(frequency)
    if frequency in FIXED_STEP_DAYS:
        return current + dt.timedelta(days=FIXED_STEP_DAYS[frequency])
    return add_months(current, MONTH_STEPS[frequency], anchor_day)


def due_occurrences(
    next_run_date: dt.date,
    frequency: RecurringFrequency,
    today: dt.date,
    anchor_day: Optional[int] = None,
    end_date: Optional[dt.date] = None,
    remaining: Optional[int] = None,
) -> List[dt.date]:
    """List every occurrence on or before ``today`` that has not run yet.

    Args:
        next_run_date: First pending occurrence
        frequency: Schedule frequency
        today: Run date of the batch job
        anchor_day: Day of month monthly-based schedules stick to
        end_date: Last date an occurrence may fall on
        remaining: Maximum number of occurrences still allowed

    Returns:
        Occurrence dates in ascending order (possibly empty)
    """
    occurrences: List[dt.date] = []
    current = next_run_date

    while current <= today and len(occurrences) < MAX_CATCH_UP:
        if end_date is not None and current > end_date:
            break
        if remaining is not None and len(occurrences) >= remaining:
            break
        occurrences.append(current)
        current = advance_date(current, frequency, anchor_day)

    return occurrences


def first_run_on_or_after(
    next_run_date: dt.date,
    frequency: RecurringFrequency,
    target: dt.date,
    anchor_day: Optional[int] = None,
) -> dt.date:
    """Skip forward to the first occurrence not before ``target``."""
    current = next_run_date
    while current < target:
        current = advance_date(current, frequency, anchor_day)
    return current


def is_schedule_finished(
    next_run_date: dt.date,
    end_date: Optional[dt.date],
    occurrences_generated: int,
    max_occurrences: Optional[int],
) -> bool:
    """Whether a schedule can produce no further invoices."""
    if max_occurrences is not None and occurrences_generated >= max_occurrences:
        return True
    return end_date is not None and next_run_date > end_date
