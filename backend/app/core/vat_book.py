"""
VAT book (libro registro de IVA) aggregation.

Issued invoices feed the charged book (E), received invoices and internal
expenses feed the supported book (R). Entries are ordered by record date
before the registration index is assigned, so the index never depends on
insertion order.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable

from app.core.fiscal import round_currency
from app.core.ownership import OwnerRef, allocate
from app.core.records import FiscalRecord, RecordKind, effective_status
from app.core.validation import Failure, validation_error

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
SIMPLIFIED_THRESHOLD = Decimal("400")

QUARTER_MONTHS = {
    1: (1, 2, 3),
    2: (4, 5, 6),
    3: (7, 8, 9),
    4: (10, 11, 12),
}


class Book(str, Enum):
    CHARGED = "E"  # IVA repercutido
    SUPPORTED = "R"  # IVA soportado


class OperationKey(str, Enum):
    GENERAL = "01"
    CREDIT_NOTE = "02"
    EXEMPT = "03"


# ---------------------------------------------------------------------------
# Period
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReportPeriod:
    year: int
    quarter: int | None = None
    month: int | None = None

    @property
    def months(self) -> tuple[int, ...]:
        if self.month:
            return (self.month,)
        if self.quarter:
            return QUARTER_MONTHS[self.quarter]
        return tuple(range(1, 13))

    def contains(self, day: date) -> bool:
        return day.year == self.year and day.month in self.months

    @property
    def label(self) -> str:
        if self.month:
            return f"{self.year}-{self.month:02d}"
        if self.quarter:
            return f"{self.year}-T{self.quarter}"
        return str(self.year)


def validate_period(
    year: int,
    quarter: int | None = None,
    month: int | None = None,
    min_year: int = 2020,
    max_year: int = 2030,
) -> ReportPeriod | Failure:
    """Month takes precedence over quarter when both are given."""
    if year is None or not min_year <= year <= max_year:
        return validation_error(
            "INVALID_YEAR", f"Año no válido. Debe estar entre {min_year} y {max_year}.", field="year"
        )
    if month is not None:
        if not 1 <= month <= 12:
            return validation_error("INVALID_MONTH", "Mes no válido. Debe estar entre 1 y 12.", field="month")
        return ReportPeriod(year, month=month)
    if quarter is not None and quarter not in QUARTER_MONTHS:
        return validation_error(
            "INVALID_QUARTER", "Trimestre no válido. Debe estar entre 1 y 4.", field="quarter"
        )
    return ReportPeriod(year, quarter=quarter)


def filter_by_period(records: Iterable[FiscalRecord], period: ReportPeriod | None) -> list[FiscalRecord]:
    if period is None:
        return list(records)
    return [r for r in records if r.record_date is not None and period.contains(r.record_date)]


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LedgerEntry:
    index: int
    record_id: int | None
    record_date: date
    record_number: str | None
    external_number: str | None
    counterparty_id: int | None
    counterparty_name: str | None
    base_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    withholding_rate: Decimal
    withholding_amount: Decimal
    total_amount: Decimal
    deductible: bool
    operation_key: OperationKey
    invoice_type: str
    record_type: RecordKind
    is_credit_note: bool
    is_proportional: bool
    corresponding_month: str | None
    status: str


def operation_key(record: FiscalRecord) -> OperationKey:
    if record.is_credit_note:
        return OperationKey.CREDIT_NOTE
    if not record.vat_rate:
        return OperationKey.EXEMPT
    return OperationKey.GENERAL


def invoice_type(record: FiscalRecord, simplified_threshold: Decimal = SIMPLIFIED_THRESHOLD) -> str:
    # F4 rectificativa, F2 simplificada, F1 completa
    if record.is_credit_note:
        return "F4"
    if abs(record.total_amount) < simplified_threshold:
        return "F2"
    return "F1"


def to_ledger_entry(
    record: FiscalRecord,
    index: int = 0,
    simplified_threshold: Decimal = SIMPLIFIED_THRESHOLD,
    today: date | None = None,
) -> LedgerEntry:
    status = effective_status(record, today) if today else record.status
    return LedgerEntry(
        index=index,
        record_id=record.id,
        record_date=record.record_date,
        record_number=record.record_number,
        external_number=record.external_number,
        counterparty_id=record.counterparty_id,
        counterparty_name=record.counterparty_name,
        base_amount=record.base_amount,
        vat_rate=record.vat_rate,
        vat_amount=record.vat_amount,
        withholding_rate=record.withholding_rate,
        withholding_amount=record.withholding_amount,
        total_amount=record.total_amount,
        deductible=record.is_deductible,
        operation_key=operation_key(record),
        invoice_type=invoice_type(record, simplified_threshold),
        record_type=record.kind,
        is_credit_note=record.is_credit_note,
        is_proportional=record.is_proportional,
        corresponding_month=record.corresponding_month,
        status=status.value,
    )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LedgerTotals:
    count: int = 0
    base: Decimal = ZERO
    vat: Decimal = ZERO
    withholding: Decimal = ZERO
    total: Decimal = ZERO
    deductible_count: int = 0
    deductible_base: Decimal = ZERO
    deductible_vat: Decimal = ZERO
    proportional_count: int = 0
    status_counts: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RateBreakdown:
    vat_rate: Decimal
    base: Decimal
    vat_amount: Decimal
    count: int


@dataclass(frozen=True)
class Ledger:
    entries: list[LedgerEntry]
    totals: LedgerTotals
    breakdown_by_rate: list[RateBreakdown]
    book: Book | None = None
    period: ReportPeriod | None = None


def compute_totals(entries: list[LedgerEntry]) -> LedgerTotals:
    deductible = [e for e in entries if e.deductible]
    status_counts: dict[str, int] = defaultdict(int)
    for e in entries:
        status_counts[e.status] += 1

    return LedgerTotals(
        count=len(entries),
        base=round_currency(sum((e.base_amount for e in entries), ZERO)),
        vat=round_currency(sum((e.vat_amount for e in entries), ZERO)),
        withholding=round_currency(sum((e.withholding_amount for e in entries), ZERO)),
        total=round_currency(sum((e.total_amount for e in entries), ZERO)),
        deductible_count=len(deductible),
        deductible_base=round_currency(sum((e.base_amount for e in deductible), ZERO)),
        deductible_vat=round_currency(sum((e.vat_amount for e in deductible), ZERO)),
        proportional_count=sum(1 for e in entries if e.is_proportional),
        status_counts=dict(status_counts),
    )


def breakdown_by_rate(entries: list[LedgerEntry]) -> list[RateBreakdown]:
    groups: dict[Decimal, list[LedgerEntry]] = defaultdict(list)
    for e in entries:
        groups[round_currency(e.vat_rate)].append(e)

    return [
        RateBreakdown(
            vat_rate=rate,
            base=round_currency(sum((e.base_amount for e in group), ZERO)),
            vat_amount=round_currency(sum((e.vat_amount for e in group), ZERO)),
            count=len(group),
        )
        for rate, group in sorted(groups.items(), key=lambda item: item[0], reverse=True)
    ]


def generate_ledger(
    records: Iterable[FiscalRecord],
    period: ReportPeriod | None = None,
    book: Book | None = None,
    simplified_threshold: Decimal = SIMPLIFIED_THRESHOLD,
    today: date | None = None,
) -> Ledger:
    """
    Build a ledger: filter by period, order by date, index from 1, then
    compute totals and the per-rate breakdown over the filtered entries.
    """
    selected = filter_by_period(records, period)
    selected.sort(key=lambda r: (r.record_date, r.record_number or "", r.id or 0))

    entries = [
        to_ledger_entry(record, index, simplified_threshold, today)
        for index, record in enumerate(selected, start=1)
    ]
    ledger = Ledger(
        entries=entries,
        totals=compute_totals(entries),
        breakdown_by_rate=breakdown_by_rate(entries),
        book=book,
        period=period,
    )
    logger.debug(
        "Ledger %s %s: %d entries", book.value if book else "-", period.label if period else "all", len(entries)
    )
    return ledger


def charged_book(records: Iterable[FiscalRecord], period: ReportPeriod | None = None, **kwargs) -> Ledger:
    issued = [r for r in records if r.kind is RecordKind.ISSUED]
    return generate_ledger(issued, period, Book.CHARGED, **kwargs)


def supported_book(records: Iterable[FiscalRecord], period: ReportPeriod | None = None, **kwargs) -> Ledger:
    supported = [r for r in records if r.kind in (RecordKind.RECEIVED, RecordKind.INTERNAL)]
    return generate_ledger(supported, period, Book.SUPPORTED, **kwargs)


# ---------------------------------------------------------------------------
# Per-owner consolidation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OwnerTotals:
    count: int = 0
    base: Decimal = ZERO
    vat: Decimal = ZERO
    deductible_vat: Decimal = ZERO
    withholding: Decimal = ZERO
    total: Decimal = ZERO


class _Accumulator:
    """Unrounded running sums; rounded once when the summary is built."""

    def __init__(self):
        self.count = 0
        self.base = ZERO
        self.vat = ZERO
        self.deductible_vat = ZERO
        self.withholding = ZERO
        self.total = ZERO

    def add(self, record: FiscalRecord, fraction: Decimal) -> None:
        self.count += 1
        self.base += record.base_amount * fraction
        self.vat += record.vat_amount * fraction
        if record.is_deductible:
            self.deductible_vat += record.vat_amount * fraction
        self.withholding += record.withholding_amount * fraction
        self.total += record.total_amount * fraction

    def totals(self) -> OwnerTotals:
        return OwnerTotals(
            count=self.count,
            base=round_currency(self.base),
            vat=round_currency(self.vat),
            deductible_vat=round_currency(self.deductible_vat),
            withholding=round_currency(self.withholding),
            total=round_currency(self.total),
        )


@dataclass(frozen=True)
class OwnerPeriodSummary:
    owner_id: int
    owner_name: str
    issued: OwnerTotals
    received: OwnerTotals
    internal_expenses: OwnerTotals

    @property
    def total_income(self) -> Decimal:
        return self.issued.total

    @property
    def total_expenses(self) -> Decimal:
        return self.received.total + self.internal_expenses.total

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def vat_charged(self) -> Decimal:
        return self.issued.vat

    @property
    def vat_supported(self) -> Decimal:
        return self.received.deductible_vat + self.internal_expenses.deductible_vat

    @property
    def net_vat_position(self) -> Decimal:
        return self.vat_charged - self.vat_supported

    @property
    def has_activity(self) -> bool:
        return bool(self.issued.count or self.received.count or self.internal_expenses.count)


@dataclass(frozen=True)
class OverallTotals:
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net_balance: Decimal = ZERO
    vat_charged: Decimal = ZERO
    vat_supported: Decimal = ZERO
    net_vat_position: Decimal = ZERO
    withholding_retained: Decimal = ZERO  # on issued invoices
    withholding_supported: Decimal = ZERO  # on received invoices and expenses


@dataclass(frozen=True)
class OwnerSummaryReport:
    owners: list[OwnerPeriodSummary]
    overall_total: OverallTotals
    period: ReportPeriod | None = None


_KIND_SLOT = {
    RecordKind.ISSUED: "issued",
    RecordKind.RECEIVED: "received",
    RecordKind.INTERNAL: "internal_expenses",
}


def generate_owner_summary(
    records: Iterable[FiscalRecord],
    owners: list[OwnerRef],
    period: ReportPeriod | None = None,
) -> OwnerSummaryReport:
    """
    Consolidate records per owner for a period.

    Every owner in the roster appears in the report, with zero totals when
    nothing was allocated to them. Records tied to a property but without a
    resolvable owner contribute to nobody.
    """
    names = {o.id: o.name for o in owners}
    order = [o.id for o in owners]
    buckets: dict[int, dict[str, _Accumulator]] = {
        owner_id: {slot: _Accumulator() for slot in _KIND_SLOT.values()} for owner_id in order
    }

    unallocated = 0
    for record in filter_by_period(records, period):
        allocations = allocate(record, owners)
        if not allocations:
            unallocated += 1
            continue
        slot = _KIND_SLOT[record.kind]
        for allocation in allocations:
            if allocation.owner_id not in buckets:
                buckets[allocation.owner_id] = {s: _Accumulator() for s in _KIND_SLOT.values()}
                order.append(allocation.owner_id)
            buckets[allocation.owner_id][slot].add(record, allocation.fraction)

    if unallocated:
        logger.info("%d records without owner allocation left out of the summary", unallocated)

    summaries = [
        OwnerPeriodSummary(
            owner_id=owner_id,
            owner_name=names.get(owner_id) or f"Propietario {owner_id}",
            issued=buckets[owner_id]["issued"].totals(),
            received=buckets[owner_id]["received"].totals(),
            internal_expenses=buckets[owner_id]["internal_expenses"].totals(),
        )
        for owner_id in order
    ]

    overall = OverallTotals(
        total_income=sum((s.total_income for s in summaries), ZERO),
        total_expenses=sum((s.total_expenses for s in summaries), ZERO),
        net_balance=sum((s.net_balance for s in summaries), ZERO),
        vat_charged=sum((s.vat_charged for s in summaries), ZERO),
        vat_supported=sum((s.vat_supported for s in summaries), ZERO),
        net_vat_position=sum((s.net_vat_position for s in summaries), ZERO),
        withholding_retained=sum((s.issued.withholding for s in summaries), ZERO),
        withholding_supported=sum(
            (s.received.withholding + s.internal_expenses.withholding for s in summaries), ZERO
        ),
    )
    return OwnerSummaryReport(owners=summaries, overall_total=overall, period=period)
