"""
Proportional (day-based) billing for partial months.
The billed fraction always divides by the length of the month that contains
the start date, even when the range runs into the following month.
"""
import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

MONTH_NAMES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


@dataclass(frozen=True)
class ProrationResult:
    original_base: Decimal
    prorated_base: Decimal
    days_billed: int
    days_in_month: int
    proportion: Decimal  # fraction, 1 for a full month
    proportion_percentage: Decimal  # 2 dp, for display

    @property
    def is_full_month(self) -> bool:
        return self.days_billed == 0


def _cents(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def days_between(start: date, end: date) -> int:
    """Inclusive day count: the same day on both ends counts as one day."""
    return (end - start).days + 1


def prorate_base(
    base: Decimal,
    start: date | None = None,
    end: date | None = None,
) -> ProrationResult:
    """
    Return the base adjusted to the fraction of the month actually billed.

    Without a complete date range the full base is returned with
    days_billed = 0 and a 100 % proportion (normal month).
    """
    base = Decimal(str(base))

    if start is None or end is None:
        return ProrationResult(
            original_base=_cents(base),
            prorated_base=_cents(base),
            days_billed=0,
            days_in_month=0,
            proportion=Decimal("1"),
            proportion_percentage=Decimal("100.00"),
        )

    billed = days_between(start, end)
    month_days = days_in_month(start.year, start.month)
    proportion = Decimal(billed) / Decimal(month_days)

    return ProrationResult(
        original_base=_cents(base),
        prorated_base=_cents(base * Decimal(billed) / Decimal(month_days)),
        days_billed=billed,
        days_in_month=month_days,
        proportion=proportion,
        proportion_percentage=_cents(proportion * 100),
    )


def corresponding_month(record_date: date | None, manual: str | None = None) -> str | None:
    """YYYY-MM the record belongs to; an explicit value always wins."""
    if manual:
        return manual
    if record_date is None:
        return None
    return f"{record_date.year}-{record_date.month:02d}"


def describe_period(start: date | None, end: date | None) -> str:
    if start is None or end is None:
        return "Mes completo"
    return f"Del {start.day} al {end.day} de {MONTH_NAMES[start.month - 1]} de {start.year}"
