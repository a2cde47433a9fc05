"""Recurring internal expenses: period validation and next occurrence."""
from datetime import date

from app.core.proration import days_in_month
from app.core.validation import Failure, validation_error

RECURRENCE_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}


def validate_recurrence(
    is_recurring: bool,
    period: str | None,
    next_occurrence: date | None = None,
) -> Failure | None:
    if is_recurring:
        if not period:
            return validation_error(
                "INVALID_RECURRENCE",
                "Los gastos recurrentes deben tener un período de recurrencia.",
                field="recurrence_period",
            )
        if period not in RECURRENCE_MONTHS:
            return validation_error(
                "INVALID_RECURRENCE",
                "Período de recurrencia no válido. Debe ser: monthly, quarterly o yearly.",
                field="recurrence_period",
            )
    elif period or next_occurrence:
        return validation_error(
            "INVALID_RECURRENCE",
            "Los gastos no recurrentes no pueden tener período de recurrencia.",
            field="recurrence_period",
        )
    return None


def next_occurrence(current: date, period: str) -> date:
    """Move `current` forward by the period; the day is clamped to the target month's end."""
    months = RECURRENCE_MONTHS[period]
    month_index = current.month - 1 + months
    year = current.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(current.day, days_in_month(year, month)))
