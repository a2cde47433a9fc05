"""
SQLAlchemy implementations of the fiscal engine's collaborator protocols.

Repositories only flush; committing (and retrying on a numbering clash) is
left to create_with_retry so a whole request stays in one transaction.
"""
import logging
from calendar import monthrange
from dataclasses import fields
from datetime import date
from decimal import Decimal
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.numbering import NumberingSpace
from app.core.ownership import OwnerRef
from app.core.records import FiscalRecord, RecordKind, RecordStatus
from app.models.counterparty import Client, Supplier
from app.models.estate import OwnershipLink
from app.models.invoice import Invoice
from app.models.owner import Owner

logger = logging.getLogger(__name__)

T = TypeVar("T")

DECIMAL_FIELDS = {
    "base_amount",
    "original_base",
    "vat_rate",
    "vat_amount",
    "withholding_rate",
    "withholding_amount",
    "total_amount",
    "ownership_share",
}
RECORD_FIELDS = [f.name for f in fields(FiscalRecord)]


def to_record(row: Invoice) -> FiscalRecord:
    values = {}
    for name in RECORD_FIELDS:
        value = getattr(row, name)
        if name in DECIMAL_FIELDS and value is not None:
            value = Decimal(str(value))
        values[name] = value
    values["kind"] = RecordKind(row.kind)
    values["status"] = RecordStatus(row.status)
    return FiscalRecord(**values)


def _copy_to_row(record: FiscalRecord, row: Invoice) -> Invoice:
    for name in RECORD_FIELDS:
        if name == "id":
            continue
        setattr(row, name, getattr(record, name))
    row.kind = record.kind.value
    row.status = record.status.value
    return row


def _month_bounds(month: str) -> tuple[date, date]:
    year, month_number = (int(part) for part in month.split("-"))
    return date(year, month_number, 1), date(year, month_number, monthrange(year, month_number)[1])


def _matches(column, value):
    return column.is_(None) if value is None else column == value


class SqlRecordRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, record_id: int) -> FiscalRecord | None:
        row = self.db.get(Invoice, record_id)
        return to_record(row) if row else None

    def list_records(self, kind: RecordKind | None = None, year: int | None = None) -> list[FiscalRecord]:
        q = self.db.query(Invoice)
        if kind is not None:
            q = q.filter(Invoice.kind == kind.value)
        if year is not None:
            q = q.filter(Invoice.record_date.between(date(year, 1, 1), date(year, 12, 31)))
        return [to_record(row) for row in q.order_by(Invoice.record_date, Invoice.id).all()]

    def find_record_numbers(self, space: NumberingSpace, prefix: str) -> list[str]:
        kind, is_credit_note = space
        rows = (
            self.db.query(Invoice.record_number)
            .filter(
                Invoice.kind == kind.value,
                Invoice.is_credit_note == is_credit_note,
                Invoice.record_number.startswith(f"{prefix}-", autoescape=True),
            )
            .all()
        )
        return [row.record_number for row in rows]

    def find_existing_for_period(
        self,
        kind: RecordKind,
        owner_id: int | None,
        property_id: int | None,
        counterparty_id: int | None,
        month: str,
    ) -> FiscalRecord | None:
        first_day, last_day = _month_bounds(month)
        row = (
            self.db.query(Invoice)
            .filter(
                Invoice.kind == kind.value,
                Invoice.is_credit_note.is_(False),
                _matches(Invoice.owner_id, owner_id),
                _matches(Invoice.property_id, property_id),
                _matches(Invoice.counterparty_id, counterparty_id),
                Invoice.record_date.between(first_day, last_day),
            )
            .first()
        )
        return to_record(row) if row else None

    def find_by_record_number(self, kind: RecordKind, record_number: str) -> FiscalRecord | None:
        row = (
            self.db.query(Invoice)
            .filter(Invoice.kind == kind.value, Invoice.record_number == record_number)
            .first()
        )
        return to_record(row) if row else None

    def find_by_original(self, record_id: int) -> FiscalRecord | None:
        row = (
            self.db.query(Invoice)
            .filter(Invoice.original_record_id == record_id)
            .order_by(Invoice.id)
            .first()
        )
        return to_record(row) if row else None

    def add(self, record: FiscalRecord) -> FiscalRecord:
        row = _copy_to_row(record, Invoice())
        self.db.add(row)
        self.db.flush()
        self.db.refresh(row)
        return to_record(row)

    def save(self, record: FiscalRecord) -> FiscalRecord:
        row = self.db.get(Invoice, record.id)
        _copy_to_row(record, row)
        self.db.flush()
        self.db.refresh(row)
        return to_record(row)


class SqlOwnershipRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_ownership_share(self, property_id: int, owner_id: int) -> Decimal | None:
        link = (
            self.db.query(OwnershipLink)
            .filter(OwnershipLink.estate_id == property_id, OwnershipLink.owner_id == owner_id)
            .first()
        )
        return Decimal(str(link.ownership_percentage)) if link else None


class SqlOwnerRoster:
    def __init__(self, db: Session):
        self.db = db

    def list_owners(self) -> list[OwnerRef]:
        return [OwnerRef(o.id, o.name) for o in self.db.query(Owner).order_by(Owner.id).all()]


class SqlCounterpartyDirectory:
    """Clients for issued invoices, suppliers for everything else."""

    def __init__(self, db: Session):
        self.db = db

    def get_payment_terms(self, kind: RecordKind, counterparty_id: int) -> int | None:
        model = Client if kind is RecordKind.ISSUED else Supplier
        counterparty = self.db.get(model, counterparty_id)
        return counterparty.payment_terms if counterparty else None

    def get_name(self, kind: RecordKind, counterparty_id: int | None) -> str | None:
        if counterparty_id is None:
            return None
        model = Client if kind is RecordKind.ISSUED else Supplier
        counterparty = self.db.get(model, counterparty_id)
        return counterparty.name if counterparty else None


def create_with_retry(db: Session, operation: Callable[[], T], attempts: int = 3) -> T:
    """
    Run `operation` and commit. A unique-constraint clash (two requests taking
    the same record number) rolls back and runs the operation again so it
    reads the new last number.
    """
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except IntegrityError:
            db.rollback()
            if attempt == attempts:
                logger.error("Record creation failed after %d attempts", attempts)
                raise
            logger.warning("Record number clash, retrying (attempt %d/%d)", attempt, attempts)
