"""
FiscalRecord: the shape shared by issued invoices, received invoices and
internal expenses inside the fiscal engine.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum


class RecordKind(str, Enum):
    ISSUED = "issued"
    RECEIVED = "received"
    INTERNAL = "internal"


class RecordStatus(str, Enum):
    PENDING = "pending"
    COLLECTED = "collected"
    PAID = "paid"
    OVERDUE = "overdue"  # derived from due_date, never stored
    DISPUTED = "disputed"


# Terminal state per kind: issued invoices are collected, the rest are paid.
TERMINAL_STATUS = {
    RecordKind.ISSUED: RecordStatus.COLLECTED,
    RecordKind.RECEIVED: RecordStatus.PAID,
    RecordKind.INTERNAL: RecordStatus.PAID,
}


@dataclass
class FiscalRecord:
    kind: RecordKind
    counterparty_id: int | None
    record_date: date
    base_amount: Decimal = Decimal("0")
    vat_rate: Decimal = Decimal("0")
    vat_amount: Decimal = Decimal("0")
    withholding_rate: Decimal = Decimal("0")
    withholding_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    # full-month base before proration; base_amount holds the billed base
    original_base: Decimal | None = None

    id: int | None = None
    record_number: str | None = None
    external_number: str | None = None  # supplier's own invoice number
    counterparty_name: str | None = None
    description: str | None = None

    is_credit_note: bool = False
    original_record_id: int | None = None

    is_proportional: bool = False
    period_start: date | None = None
    period_end: date | None = None
    corresponding_month: str | None = None  # YYYY-MM

    status: RecordStatus = RecordStatus.PENDING
    due_date: date | None = None
    settled_on: date | None = None
    settlement_reference: str | None = None

    property_id: int | None = None
    owner_id: int | None = None
    ownership_share: Decimal | None = None  # 0-100, snapshotted at creation
    deductible: bool = True

    is_recurring: bool = False
    recurrence_period: str | None = None
    next_occurrence_date: date | None = None

    @property
    def terminal_status(self) -> RecordStatus:
        return TERMINAL_STATUS[self.kind]

    @property
    def is_settled(self) -> bool:
        return self.status is self.terminal_status

    @property
    def is_deductible(self) -> bool:
        # VAT charged on issued invoices is never deductible
        return self.kind is not RecordKind.ISSUED and self.deductible


def effective_status(record: FiscalRecord, today: date) -> RecordStatus:
    """Stored status, except pending records past their due date read as overdue."""
    if (
        record.status is RecordStatus.PENDING
        and record.due_date is not None
        and record.due_date < today
    ):
        return RecordStatus.OVERDUE
    return record.status


def allowed_statuses(kind: RecordKind) -> set[RecordStatus]:
    return {RecordStatus.PENDING, RecordStatus.DISPUTED, TERMINAL_STATUS[kind]}
