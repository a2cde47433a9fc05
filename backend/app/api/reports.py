"""
Receivables and payables reports per record kind, plus the income statement.
"""
from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.common import get_period
from app.core.receivables import (
    DEFAULT_DUE_SOON_DAYS,
    collection_stats,
    credit_notes,
    due_soon,
    income_statement,
    monthly_summary,
    overdue_records,
    pending_aging,
    stats_by_counterparty,
    stats_by_owner,
)
from app.core.records import RecordKind
from app.core.vat_book import ReportPeriod
from app.db.database import get_db
from app.db.repositories import SqlOwnerRoster, SqlRecordRepository

router = APIRouter()


def _records(kind: RecordKind, db: Session, year: int | None = None):
    return SqlRecordRepository(db).list_records(kind, year)


@router.get("/income-statement")
def get_income_statement(period: ReportPeriod = Depends(get_period), db: Session = Depends(get_db)):
    records = SqlRecordRepository(db).list_records(year=period.year)
    return asdict(income_statement(records, period))


@router.get("/{kind}/aging")
def get_pending_aging(kind: RecordKind, db: Session = Depends(get_db)):
    return asdict(pending_aging(_records(kind, db), date.today()))


@router.get("/{kind}/overdue")
def get_overdue(kind: RecordKind, db: Session = Depends(get_db)):
    return [asdict(item) for item in overdue_records(_records(kind, db), date.today())]


@router.get("/{kind}/due-soon")
def get_due_soon(kind: RecordKind, days: int = Query(DEFAULT_DUE_SOON_DAYS), db: Session = Depends(get_db)):
    return [asdict(item) for item in due_soon(_records(kind, db), date.today(), days)]


@router.get("/{kind}/stats")
def get_collection_stats(kind: RecordKind, db: Session = Depends(get_db)):
    return asdict(collection_stats(_records(kind, db), date.today()))


@router.get("/{kind}/by-counterparty")
def get_stats_by_counterparty(kind: RecordKind, year: int | None = None, db: Session = Depends(get_db)):
    return [asdict(s) for s in stats_by_counterparty(_records(kind, db, year))]


@router.get("/{kind}/by-owner")
def get_stats_by_owner(kind: RecordKind, year: int | None = None, db: Session = Depends(get_db)):
    owners = SqlOwnerRoster(db).list_owners()
    return [asdict(s) for s in stats_by_owner(_records(kind, db, year), owners)]


@router.get("/{kind}/monthly/{year}")
def get_monthly_summary(kind: RecordKind, year: int, db: Session = Depends(get_db)):
    period = get_period(year)
    return {
        "year": period.year,
        "months": [asdict(m) for m in monthly_summary(_records(kind, db, period.year), period.year)],
    }


@router.get("/{kind}/credit-notes")
def get_credit_notes(kind: RecordKind, db: Session = Depends(get_db)):
    return [asdict(n) for n in credit_notes(_records(kind, db))]
