"""Tests for VAT liquidation and annual statistics."""
from datetime import date
from decimal import Decimal

from app.core.liquidation import (
    LiquidationResult,
    annual_statistics,
    generate_liquidation,
    growth_rate,
)
from app.core.records import FiscalRecord, RecordKind
from app.core.vat_book import Ledger, LedgerTotals, RateBreakdown, charged_book, supported_book


def _ledger(vat="0", deductible_vat="0", breakdown=()):
    totals = LedgerTotals(vat=Decimal(vat), deductible_vat=Decimal(deductible_vat))
    return Ledger(entries=[], totals=totals, breakdown_by_rate=list(breakdown))


def _record(kind, day, base, rate="21"):
    base = Decimal(base)
    vat = (base * Decimal(rate) / 100).quantize(Decimal("0.01"))
    return FiscalRecord(
        kind=kind,
        counterparty_id=1,
        record_date=day,
        base_amount=base,
        vat_rate=Decimal(rate),
        vat_amount=vat,
        total_amount=base + vat,
    )


class TestLiquidation:
    def test_to_pay(self):
        result = generate_liquidation(_ledger(vat="500"), _ledger(vat="320", deductible_vat="300"))
        assert result.net_vat == Decimal("200.00")
        assert result.result is LiquidationResult.TO_PAY
        assert result.settlement_amount == Decimal("200.00")

    def test_to_refund(self):
        result = generate_liquidation(_ledger(vat="100"), _ledger(deductible_vat="250"))
        assert result.net_vat == Decimal("-150.00")
        assert result.result is LiquidationResult.TO_REFUND
        assert result.settlement_amount == Decimal("150.00")

    def test_zero_is_refund(self):
        result = generate_liquidation(_ledger(), _ledger())
        assert result.result is LiquidationResult.TO_REFUND
        assert result.settlement_amount == Decimal("0.00")

    def test_combined_breakdown(self):
        charged = _ledger(breakdown=[RateBreakdown(Decimal("21"), Decimal("1000"), Decimal("210"), 1)])
        supported = _ledger(breakdown=[
            RateBreakdown(Decimal("21"), Decimal("100"), Decimal("21"), 1),
            RateBreakdown(Decimal("10"), Decimal("50"), Decimal("5"), 1),
        ])
        rows = generate_liquidation(charged, supported).breakdown
        assert [r.vat_rate for r in rows] == [Decimal("21"), Decimal("10")]
        assert rows[0].charged_vat == Decimal("210")
        assert rows[0].supported_vat == Decimal("21")
        assert rows[1].charged_vat == Decimal("0")

    def test_from_books(self):
        records = [
            _record(RecordKind.ISSUED, date(2025, 4, 3), "2000"),
            _record(RecordKind.RECEIVED, date(2025, 5, 3), "500"),
        ]
        result = generate_liquidation(charged_book(records), supported_book(records))
        assert result.net_vat == Decimal("315.00")
        assert result.charged_base == Decimal("2000.00")


class TestGrowthRate:
    def test_growth(self):
        assert growth_rate(Decimal("150"), Decimal("100")) == Decimal("50.00")
        assert growth_rate(Decimal("50"), Decimal("100")) == Decimal("-50.00")

    def test_guarded(self):
        assert growth_rate(Decimal("150"), Decimal("0")) is None
        assert growth_rate(Decimal("150"), None) is None


class TestAnnualStatistics:
    def _records(self):
        return [
            _record(RecordKind.ISSUED, date(2025, 2, 1), "1000"),   # Q1 charged 210
            _record(RecordKind.ISSUED, date(2025, 8, 1), "2000"),   # Q3 charged 420
            _record(RecordKind.ISSUED, date(2025, 11, 1), "3000"),  # Q4 charged 630
            _record(RecordKind.RECEIVED, date(2025, 8, 15), "500"),  # Q3 supported 105
            _record(RecordKind.ISSUED, date(2024, 11, 1), "9999"),  # other year
        ]

    def test_quarters(self):
        stats = annual_statistics(self._records(), 2025)
        assert [q.quarter for q in stats.quarters] == [1, 2, 3, 4]
        assert [q.vat_charged for q in stats.quarters] == [
            Decimal("210.00"), Decimal("0.00"), Decimal("420.00"), Decimal("630.00")
        ]
        q3 = stats.quarters[2]
        assert q3.issued_count == 1
        assert q3.supported_count == 1
        assert q3.net_position == Decimal("315.00")

    def test_growth_guard_after_empty_quarter(self):
        stats = annual_statistics(self._records(), 2025)
        assert stats.quarters[0].growth_rate is None  # no previous quarter
        assert stats.quarters[1].growth_rate == Decimal("-100.00")
        assert stats.quarters[2].growth_rate is None  # Q2 was zero
        assert stats.quarters[3].growth_rate == Decimal("50.00")

    def test_annual_totals(self):
        stats = annual_statistics(self._records(), 2025)
        assert stats.issued_count == 3
        assert stats.supported_count == 1
        assert stats.liquidation.charged_vat == Decimal("1260.00")
        assert stats.liquidation.net_vat == Decimal("1155.00")
        assert stats.liquidation.result is LiquidationResult.TO_PAY
        assert stats.charged_breakdown[0].count == 3

    def test_empty_year(self):
        stats = annual_statistics([], 2025)
        assert all(q.growth_rate is None for q in stats.quarters)
        assert stats.liquidation.settlement_amount == Decimal("0.00")
