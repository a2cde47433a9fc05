"""
Receivables and payables reports over fiscal records.

Everything here is a pure aggregation over records the caller has already
loaded for one kind: pending aging, overdue and due-soon listings, totals
per counterparty and per owner, the monthly summary, the income statement
and the credit note listing. Credit notes never count as billed amounts;
they only show up as refunds.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from app.core.fiscal import round_currency
from app.core.ownership import OwnerRef
from app.core.proration import MONTH_NAMES
from app.core.records import FiscalRecord, RecordKind, RecordStatus, effective_status
from app.core.vat_book import ReportPeriod, filter_by_period

ZERO = Decimal("0")
DEFAULT_DUE_SOON_DAYS = 7


class AgingBucket(str, Enum):
    CURRENT = "CURRENT"
    DAYS_1_30 = "1-30_DAYS"
    DAYS_31_60 = "31-60_DAYS"
    DAYS_61_90 = "61-90_DAYS"
    OVER_90 = "OVER_90_DAYS"


def aging_bucket(days_overdue: int) -> AgingBucket:
    if days_overdue <= 0:
        return AgingBucket.CURRENT
    if days_overdue <= 30:
        return AgingBucket.DAYS_1_30
    if days_overdue <= 60:
        return AgingBucket.DAYS_31_60
    if days_overdue <= 90:
        return AgingBucket.DAYS_61_90
    return AgingBucket.OVER_90


@dataclass(frozen=True)
class ReceivableItem:
    record_id: int | None
    record_number: str | None
    counterparty_id: int | None
    counterparty_name: str | None
    record_date: date
    due_date: date | None
    total_amount: Decimal
    days_overdue: int = 0
    days_until_due: int = 0
    aging_bucket: AgingBucket = AgingBucket.CURRENT


@dataclass(frozen=True)
class AgingReport:
    as_of: date
    items: list[ReceivableItem]
    totals_by_bucket: dict[str, Decimal]
    total_pending: Decimal


def _is_open(record: FiscalRecord) -> bool:
    return record.status is RecordStatus.PENDING and not record.is_credit_note


def _item(record: FiscalRecord, today: date) -> ReceivableItem:
    due = record.due_date or record.record_date
    days = (today - due).days
    return ReceivableItem(
        record_id=record.id,
        record_number=record.record_number,
        counterparty_id=record.counterparty_id,
        counterparty_name=record.counterparty_name,
        record_date=record.record_date,
        due_date=record.due_date,
        total_amount=record.total_amount,
        days_overdue=max(days, 0),
        days_until_due=max(-days, 0),
        aging_bucket=aging_bucket(days),
    )


def _by_due_date(record: FiscalRecord):
    return (record.due_date or record.record_date, record.id or 0)


def pending_aging(records: Iterable[FiscalRecord], today: date) -> AgingReport:
    """Pending records by how long they are past due. Records without a due date age from their record date."""
    pending = sorted((r for r in records if _is_open(r)), key=_by_due_date)
    items = [_item(r, today) for r in pending]

    totals = {bucket.value: ZERO for bucket in AgingBucket}
    for item in items:
        totals[item.aging_bucket.value] += item.total_amount

    return AgingReport(
        as_of=today,
        items=items,
        totals_by_bucket={k: round_currency(v) for k, v in totals.items()},
        total_pending=round_currency(sum((i.total_amount for i in items), ZERO)),
    )


def overdue_records(records: Iterable[FiscalRecord], today: date) -> list[ReceivableItem]:
    overdue = [
        r for r in records
        if not r.is_credit_note and effective_status(r, today) is RecordStatus.OVERDUE
    ]
    return [_item(r, today) for r in sorted(overdue, key=_by_due_date)]


def due_soon(records: Iterable[FiscalRecord], today: date, days: int = DEFAULT_DUE_SOON_DAYS) -> list[ReceivableItem]:
    """Pending records falling due between today and `days` from now, both ends included."""
    if days < 1:
        days = DEFAULT_DUE_SOON_DAYS
    horizon = today + timedelta(days=days)
    upcoming = [
        r for r in records
        if _is_open(r) and r.due_date is not None and today <= r.due_date <= horizon
    ]
    return [_item(r, today) for r in sorted(upcoming, key=_by_due_date)]


# ---------------------------------------------------------------------------
# Grouped statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CounterpartyStats:
    counterparty_id: int | None
    counterparty_name: str | None
    invoice_count: int
    total_amount: Decimal
    total_vat: Decimal
    total_withholding: Decimal


@dataclass(frozen=True)
class OwnerStats:
    owner_id: int | None
    owner_name: str | None
    invoice_count: int
    total_amount: Decimal
    average_amount: Decimal


def stats_by_counterparty(records: Iterable[FiscalRecord]) -> list[CounterpartyStats]:
    groups: dict[int | None, list[FiscalRecord]] = defaultdict(list)
    for record in records:
        if not record.is_credit_note:
            groups[record.counterparty_id].append(record)

    stats = [
        CounterpartyStats(
            counterparty_id=counterparty_id,
            counterparty_name=next((r.counterparty_name for r in rows if r.counterparty_name), None),
            invoice_count=len(rows),
            total_amount=round_currency(sum((r.total_amount for r in rows), ZERO)),
            total_vat=round_currency(sum((r.vat_amount for r in rows), ZERO)),
            total_withholding=round_currency(sum((r.withholding_amount for r in rows), ZERO)),
        )
        for counterparty_id, rows in groups.items()
    ]
    return sorted(stats, key=lambda s: s.total_amount, reverse=True)


def stats_by_owner(records: Iterable[FiscalRecord], owners: Iterable[OwnerRef] = ()) -> list[OwnerStats]:
    """Totals per owner linked on the record. Records without an owner are grouped under None."""
    names = {owner.id: owner.name for owner in owners}
    groups: dict[int | None, list[FiscalRecord]] = defaultdict(list)
    for record in records:
        if not record.is_credit_note:
            groups[record.owner_id].append(record)

    stats = []
    for owner_id, rows in groups.items():
        total = sum((r.total_amount for r in rows), ZERO)
        stats.append(
            OwnerStats(
                owner_id=owner_id,
                owner_name=names.get(owner_id),
                invoice_count=len(rows),
                total_amount=round_currency(total),
                average_amount=round_currency(total / len(rows)),
            )
        )
    return sorted(stats, key=lambda s: s.total_amount, reverse=True)


@dataclass(frozen=True)
class CollectionStats:
    total_records: int
    pending_records: int
    settled_records: int
    overdue_records: int
    disputed_records: int
    total_amount: Decimal
    pending_amount: Decimal
    settled_percentage: Decimal


def collection_stats(records: Iterable[FiscalRecord], today: date) -> CollectionStats:
    """Counts by effective status plus the share of records already settled. Credit notes are left out."""
    rows = [r for r in records if not r.is_credit_note]
    statuses = [effective_status(r, today) for r in rows]
    settled = sum(1 for r in rows if r.is_settled)
    open_amount = sum(
        (r.total_amount for r, s in zip(rows, statuses) if s in (RecordStatus.PENDING, RecordStatus.OVERDUE)),
        ZERO,
    )
    return CollectionStats(
        total_records=len(rows),
        pending_records=statuses.count(RecordStatus.PENDING),
        settled_records=settled,
        overdue_records=statuses.count(RecordStatus.OVERDUE),
        disputed_records=statuses.count(RecordStatus.DISPUTED),
        total_amount=round_currency(sum((r.total_amount for r in rows), ZERO)),
        pending_amount=round_currency(open_amount),
        settled_percentage=round_currency(Decimal(settled) * 100 / len(rows)) if rows else ZERO,
    )


# ---------------------------------------------------------------------------
# Monthly summary and income statement
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MonthSummary:
    month: int
    month_name: str
    invoice_count: int
    total_invoiced: Decimal
    total_refunded: Decimal
    net_amount: Decimal


@dataclass(frozen=True)
class IncomeLine:
    label: str
    total_amount: Decimal = ZERO
    refunds_amount: Decimal = ZERO
    net_amount: Decimal = ZERO


@dataclass(frozen=True)
class IncomeStatement:
    period: ReportPeriod
    income: IncomeLine
    expenses: IncomeLine
    result: Decimal = ZERO


def _billed_and_refunded(records: list[FiscalRecord]) -> tuple[Decimal, Decimal]:
    billed = sum((r.total_amount for r in records if not r.is_credit_note), ZERO)
    refunded = sum((abs(r.total_amount) for r in records if r.is_credit_note), ZERO)
    return round_currency(billed), round_currency(refunded)


def monthly_summary(records: Iterable[FiscalRecord], year: int) -> list[MonthSummary]:
    """One row per month of `year` that has records; empty months are omitted."""
    months: dict[int, list[FiscalRecord]] = defaultdict(list)
    for record in records:
        if record.record_date.year == year:
            months[record.record_date.month].append(record)

    summary = []
    for month in sorted(months):
        billed, refunded = _billed_and_refunded(months[month])
        summary.append(
            MonthSummary(
                month=month,
                month_name=MONTH_NAMES[month - 1],
                invoice_count=len(months[month]),
                total_invoiced=billed,
                total_refunded=refunded,
                net_amount=billed - refunded,
            )
        )
    return summary


def _income_line(label: str, records: list[FiscalRecord]) -> IncomeLine:
    billed, refunded = _billed_and_refunded(records)
    return IncomeLine(label, billed, refunded, billed - refunded)


def income_statement(records: Iterable[FiscalRecord], period: ReportPeriod) -> IncomeStatement:
    """Issued invoices are income; received invoices and internal expenses are expenses."""
    in_period = filter_by_period(records, period)
    by_kind: dict[RecordKind, list[FiscalRecord]] = defaultdict(list)
    for record in in_period:
        by_kind[record.kind].append(record)

    income = _income_line("INGRESOS", by_kind[RecordKind.ISSUED])
    expenses = _income_line("GASTOS", by_kind[RecordKind.RECEIVED] + by_kind[RecordKind.INTERNAL])
    return IncomeStatement(
        period=period,
        income=income,
        expenses=expenses,
        result=income.net_amount - expenses.net_amount,
    )


# ---------------------------------------------------------------------------
# Credit notes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CreditNoteItem:
    record_id: int | None
    record_number: str | None
    record_date: date
    counterparty_name: str | None
    total_amount: Decimal
    original_record_id: int | None
    original_record_number: str | None


def credit_notes(records: Iterable[FiscalRecord]) -> list[CreditNoteItem]:
    """Credit notes with the number of the record they rectify, when it is among `records`."""
    records = list(records)
    numbers = {r.id: r.record_number for r in records}
    notes = sorted((r for r in records if r.is_credit_note), key=lambda r: r.id or 0)
    return [
        CreditNoteItem(
            record_id=r.id,
            record_number=r.record_number,
            record_date=r.record_date,
            counterparty_name=r.counterparty_name,
            total_amount=r.total_amount,
            original_record_id=r.original_record_id,
            original_record_number=numbers.get(r.original_record_id),
        )
        for r in notes
    ]
