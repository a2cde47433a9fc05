"""
VAT (IVA) and withholding (IRPF) amounts for one record.
Total = base + VAT - withholding, every figure rounded to cents at its own stage.
"""
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from app.core.proration import ProrationResult, prorate_base


def round_currency(amount) -> Decimal:
    return Decimal(str(amount or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FiscalAmounts:
    base: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    withholding_rate: Decimal
    withholding_amount: Decimal
    total: Decimal
    proration: ProrationResult | None = None

    @property
    def calculation_type(self) -> str:
        return "proportional" if self.proration is not None else "normal"


def compute_fiscal_amounts(
    base: Decimal,
    vat_rate: Decimal = Decimal("0"),
    withholding_rate: Decimal = Decimal("0"),
    is_proportional: bool = False,
    start: date | None = None,
    end: date | None = None,
) -> FiscalAmounts:
    """
    Compute VAT, withholding and total from a base and percentage rates.

    When the record is proportional and both dates are present the base is
    first prorated by calendar days (see app.core.proration); otherwise the
    full base is used.
    """
    vat_rate = Decimal(str(vat_rate or 0))
    withholding_rate = Decimal(str(withholding_rate or 0))

    proration = None
    if is_proportional and start is not None and end is not None:
        proration = prorate_base(base, start, end)
        effective_base = proration.prorated_base
    else:
        effective_base = round_currency(base)

    vat_amount = round_currency(effective_base * vat_rate / 100)
    withholding_amount = round_currency(effective_base * withholding_rate / 100)
    total = round_currency(effective_base + vat_amount - withholding_amount)

    return FiscalAmounts(
        base=effective_base,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        withholding_rate=withholding_rate,
        withholding_amount=withholding_amount,
        total=total,
        proration=proration,
    )
