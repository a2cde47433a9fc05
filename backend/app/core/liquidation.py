"""
Quarterly VAT liquidation and annual statistics.

net VAT = VAT charged - deductible VAT supported. A positive figure is paid
to the tax office, anything else is claimed back.
"""
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from app.core.fiscal import round_currency
from app.core.records import FiscalRecord
from app.core.vat_book import (
    QUARTER_MONTHS,
    Ledger,
    RateBreakdown,
    ReportPeriod,
    charged_book,
    supported_book,
)

ZERO = Decimal("0")


class LiquidationResult(str, Enum):
    TO_PAY = "TO_PAY"  # a ingresar
    TO_REFUND = "TO_REFUND"  # a devolver


@dataclass(frozen=True)
class CombinedRate:
    vat_rate: Decimal
    charged_base: Decimal = ZERO
    charged_vat: Decimal = ZERO
    supported_base: Decimal = ZERO
    supported_vat: Decimal = ZERO


@dataclass(frozen=True)
class Liquidation:
    charged_vat: Decimal
    supported_vat: Decimal  # deductible only
    net_vat: Decimal
    result: LiquidationResult
    settlement_amount: Decimal
    charged_base: Decimal
    supported_base: Decimal
    withholding_charged: Decimal
    withholding_supported: Decimal
    breakdown: list[CombinedRate]
    period: ReportPeriod | None = None


def combine_breakdowns(charged: list[RateBreakdown], supported: list[RateBreakdown]) -> list[CombinedRate]:
    rows: dict[Decimal, dict] = {}
    for item in charged:
        rows.setdefault(item.vat_rate, {})
        rows[item.vat_rate].update(charged_base=item.base, charged_vat=item.vat_amount)
    for item in supported:
        rows.setdefault(item.vat_rate, {})
        rows[item.vat_rate].update(supported_base=item.base, supported_vat=item.vat_amount)
    return [CombinedRate(vat_rate=rate, **rows[rate]) for rate in sorted(rows, reverse=True)]


def generate_liquidation(charged: Ledger, supported: Ledger) -> Liquidation:
    net_vat = round_currency(charged.totals.vat - supported.totals.deductible_vat)
    return Liquidation(
        charged_vat=charged.totals.vat,
        supported_vat=supported.totals.deductible_vat,
        net_vat=net_vat,
        result=LiquidationResult.TO_PAY if net_vat > 0 else LiquidationResult.TO_REFUND,
        settlement_amount=abs(net_vat),
        charged_base=charged.totals.base,
        supported_base=supported.totals.deductible_base,
        withholding_charged=charged.totals.withholding,
        withholding_supported=supported.totals.withholding,
        breakdown=combine_breakdowns(charged.breakdown_by_rate, supported.breakdown_by_rate),
        period=charged.period or supported.period,
    )


def growth_rate(current: Decimal, previous: Decimal | None) -> Decimal | None:
    """Percentage change versus the previous quarter; None when it cannot be computed."""
    if previous is None or previous == 0:
        return None
    return round_currency((current - previous) / previous * 100)


@dataclass(frozen=True)
class QuarterStats:
    quarter: int
    liquidation: Liquidation
    issued_count: int
    supported_count: int
    vat_charged: Decimal
    vat_supported: Decimal
    net_position: Decimal
    growth_rate: Decimal | None


@dataclass(frozen=True)
class AnnualStatistics:
    year: int
    quarters: list[QuarterStats]
    liquidation: Liquidation
    issued_count: int
    supported_count: int
    charged_breakdown: list[RateBreakdown]
    supported_breakdown: list[RateBreakdown]


def annual_statistics(records: Iterable[FiscalRecord], year: int) -> AnnualStatistics:
    records = list(records)
    quarters = []
    previous_charged = None

    for quarter in QUARTER_MONTHS:
        period = ReportPeriod(year, quarter=quarter)
        charged = charged_book(records, period)
        supported = supported_book(records, period)
        liquidation = generate_liquidation(charged, supported)

        quarters.append(
            QuarterStats(
                quarter=quarter,
                liquidation=liquidation,
                issued_count=charged.totals.count,
                supported_count=supported.totals.count,
                vat_charged=liquidation.charged_vat,
                vat_supported=liquidation.supported_vat,
                net_position=liquidation.net_vat,
                growth_rate=growth_rate(liquidation.charged_vat, previous_charged),
            )
        )
        previous_charged = liquidation.charged_vat

    year_period = ReportPeriod(year)
    charged = charged_book(records, year_period)
    supported = supported_book(records, year_period)

    return AnnualStatistics(
        year=year,
        quarters=quarters,
        liquidation=generate_liquidation(charged, supported),
        issued_count=charged.totals.count,
        supported_count=supported.totals.count,
        charged_breakdown=charged.breakdown_by_rate,
        supported_breakdown=supported.breakdown_by_rate,
    )
