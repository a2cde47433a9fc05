"""
Shared router helpers: engine failures to HTTP errors, lifecycle wiring and
report period parsing.
"""
from datetime import date

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.lifecycle import InvoiceLifecycleManager
from app.core.numbering import RepositorySequence, prefixes_from_constants
from app.core.validation import Failure, FailureKind
from app.core.vat_book import ReportPeriod, validate_period
from app.db.database import get_db
from app.db.repositories import (
    SqlCounterpartyDirectory,
    SqlOwnershipRepository,
    SqlRecordRepository,
)
from app.utils.fiscal_loader import (
    get_invoicing_constants,
    get_numbering_prefixes,
    get_reporting_constants,
)

STATUS_BY_KIND = {
    FailureKind.VALIDATION: 422,
    FailureKind.CONFLICT: 409,
    FailureKind.NOT_FOUND: 404,
}


def raise_for_failure(result):
    """Return `result` unchanged unless it is a Failure, which becomes an HTTPException."""
    if isinstance(result, Failure):
        raise HTTPException(
            status_code=STATUS_BY_KIND[result.kind],
            detail={"code": result.code, "message": result.message, "field": result.field},
        )
    return result


def get_lifecycle(db: Session = Depends(get_db)) -> InvoiceLifecycleManager:
    year = date.today().year
    records = SqlRecordRepository(db)
    terms = get_invoicing_constants(year).get("default_payment_terms_days", 30)
    return InvoiceLifecycleManager(
        records=records,
        ownership=SqlOwnershipRepository(db),
        counterparties=SqlCounterpartyDirectory(db),
        sequence=RepositorySequence(records, prefixes_from_constants(get_numbering_prefixes(year))),
        default_payment_terms=terms,
    )


def get_period(year: int, quarter: int | None = None, month: int | None = None) -> ReportPeriod:
    reporting = get_reporting_constants(date.today().year)
    return raise_for_failure(
        validate_period(
            year,
            quarter,
            month,
            min_year=reporting.get("min_year", 2020),
            max_year=reporting.get("max_year", 2030),
        )
    )
