"""
Issued invoices, received invoices and internal expenses.
All business rules live in InvoiceLifecycleManager; this router only parses,
wires and commits.
"""
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from app.api.common import get_lifecycle, raise_for_failure
from app.core.fiscal import compute_fiscal_amounts
from app.core.lifecycle import InvoiceLifecycleManager, calculation_details
from app.core.records import FiscalRecord, RecordKind, RecordStatus, effective_status
from app.core.validation import validate_proportional_fields
from app.db.database import get_db
from app.db.repositories import SqlCounterpartyDirectory, SqlRecordRepository, create_with_retry
from app.utils.fiscal_loader import get_valid_vat_rates, get_vat_constants, get_withholding_constants

router = APIRouter()


def _percentage(v):
    if v is not None and not 0 <= v <= 100:
        raise ValueError("El porcentaje debe estar entre 0 y 100.")
    return v


class AmountsInput(BaseModel):
    base_amount: Decimal
    vat_rate: Decimal = Decimal("0")
    withholding_rate: Decimal = Decimal("0")
    is_proportional: bool = False
    period_start: date | None = None
    period_end: date | None = None

    @field_validator("base_amount")
    @classmethod
    def non_negative_base(cls, v):
        if v < 0:
            raise ValueError("La base imponible no puede ser negativa.")
        return v

    @field_validator("vat_rate", "withholding_rate")
    @classmethod
    def valid_rate(cls, v):
        return _percentage(v)


class RecordCreate(AmountsInput):
    counterparty_id: int | None = None
    counterparty_name: str | None = None
    record_date: date
    property_id: int | None = None
    owner_id: int | None = None
    external_number: str | None = None
    description: str | None = None
    corresponding_month: str | None = None
    due_date: date | None = None
    deductible: bool = True
    is_recurring: bool = False
    recurrence_period: str | None = None
    next_occurrence_date: date | None = None


class RecordUpdate(BaseModel):
    record_number: str | None = None
    external_number: str | None = None
    counterparty_id: int | None = None
    counterparty_name: str | None = None
    description: str | None = None
    record_date: date | None = None
    due_date: date | None = None
    property_id: int | None = None
    owner_id: int | None = None
    base_amount: Decimal | None = None
    vat_rate: Decimal | None = None
    withholding_rate: Decimal | None = None
    is_proportional: bool | None = None
    period_start: date | None = None
    period_end: date | None = None
    corresponding_month: str | None = None
    deductible: bool | None = None

    @field_validator("base_amount")
    @classmethod
    def non_negative_base(cls, v):
        if v is not None and v < 0:
            raise ValueError("La base imponible no puede ser negativa.")
        return v

    @field_validator("vat_rate", "withholding_rate")
    @classmethod
    def valid_rate(cls, v):
        return _percentage(v)


class StatusUpdate(BaseModel):
    status: str
    settled_on: date | None = None
    reference: str | None = None


class RecordResponse(BaseModel):
    id: int
    kind: RecordKind
    record_number: str
    external_number: str | None
    counterparty_id: int | None
    counterparty_name: str | None
    description: str | None
    record_date: date
    base_amount: float
    original_base: float | None
    vat_rate: float
    vat_amount: float
    withholding_rate: float
    withholding_amount: float
    total_amount: float
    is_credit_note: bool
    original_record_id: int | None
    is_proportional: bool
    period_start: date | None
    period_end: date | None
    corresponding_month: str | None
    status: RecordStatus
    effective_status: RecordStatus
    due_date: date | None
    settled_on: date | None
    settlement_reference: str | None
    property_id: int | None
    owner_id: int | None
    ownership_share: float | None
    deductible: bool
    is_recurring: bool
    recurrence_period: str | None
    next_occurrence_date: date | None


def _response(record: FiscalRecord) -> RecordResponse:
    data = {name: getattr(record, name) for name in RecordResponse.model_fields if name != "effective_status"}
    return RecordResponse(**data, effective_status=effective_status(record, date.today()))


def _get_record_or_404(kind: RecordKind, record_id: int, db: Session) -> FiscalRecord:
    record = SqlRecordRepository(db).get(record_id)
    if record is None or record.kind is not kind:
        raise HTTPException(status_code=404, detail="Registro no encontrado.")
    return record


@router.post("/calculate")
def calculate_amounts(data: AmountsInput):
    """Preview of the fiscal amounts without storing anything."""
    raise_for_failure(validate_proportional_fields(data.is_proportional, data.period_start, data.period_end))
    amounts = compute_fiscal_amounts(
        data.base_amount,
        data.vat_rate,
        data.withholding_rate,
        data.is_proportional,
        data.period_start,
        data.period_end,
    )
    result = {
        "calculation_type": amounts.calculation_type,
        "base_amount": amounts.base,
        "vat_amount": amounts.vat_amount,
        "withholding_amount": amounts.withholding_amount,
        "total_amount": amounts.total,
    }
    if amounts.proration is not None:
        result.update(
            days_billed=amounts.proration.days_billed,
            days_in_month=amounts.proration.days_in_month,
            proportion_percentage=amounts.proration.proportion_percentage,
        )
    return result


@router.get("/rates")
def get_rates(year: int | None = None):
    """VAT and withholding rates configured for a year."""
    year = year or date.today().year
    withholding = get_withholding_constants(year)
    return {
        "year": year,
        "vat_rates": get_valid_vat_rates(year),
        "default_vat_rate": get_vat_constants(year).get("default_rate"),
        "withholding_rates": withholding.get("rates", []),
        "default_withholding_rate": withholding.get("default_rate"),
    }


@router.get("/{kind}", response_model=list[RecordResponse])
def list_records(
    kind: RecordKind,
    year: int | None = None,
    state: RecordStatus | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    records = SqlRecordRepository(db).list_records(kind, year)
    responses = [_response(r) for r in records]
    if state is not None:
        responses = [r for r in responses if r.effective_status is state]
    return responses


@router.get("/{kind}/{record_id}", response_model=RecordResponse)
def get_record(kind: RecordKind, record_id: int, db: Session = Depends(get_db)):
    return _response(_get_record_or_404(kind, record_id, db))


@router.post("/{kind}", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
def create_record(
    kind: RecordKind,
    data: RecordCreate,
    db: Session = Depends(get_db),
    lifecycle: InvoiceLifecycleManager = Depends(get_lifecycle),
):
    payload = data.model_dump()
    if payload["counterparty_id"] is not None:
        name = SqlCounterpartyDirectory(db).get_name(kind, payload["counterparty_id"])
        if name is None:
            raise HTTPException(status_code=404, detail="Contraparte no encontrada.")
        payload["counterparty_name"] = payload["counterparty_name"] or name

    record = raise_for_failure(create_with_retry(db, lambda: lifecycle.create_record(kind, payload)))
    return _response(record)


@router.put("/{kind}/{record_id}", response_model=RecordResponse)
def update_record(
    kind: RecordKind,
    record_id: int,
    data: RecordUpdate,
    db: Session = Depends(get_db),
    lifecycle: InvoiceLifecycleManager = Depends(get_lifecycle),
):
    _get_record_or_404(kind, record_id, db)
    record = raise_for_failure(lifecycle.update_record(record_id, data.model_dump(exclude_unset=True)))
    db.commit()
    return _response(record)


@router.patch("/{kind}/{record_id}/status", response_model=RecordResponse)
def update_status(
    kind: RecordKind,
    record_id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    lifecycle: InvoiceLifecycleManager = Depends(get_lifecycle),
):
    _get_record_or_404(kind, record_id, db)
    record = raise_for_failure(
        lifecycle.update_status(record_id, data.status, data.settled_on, data.reference)
    )
    db.commit()
    return _response(record)


@router.post(
    "/{kind}/{record_id}/credit-note",
    response_model=RecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_credit_note(
    kind: RecordKind,
    record_id: int,
    db: Session = Depends(get_db),
    lifecycle: InvoiceLifecycleManager = Depends(get_lifecycle),
):
    _get_record_or_404(kind, record_id, db)
    record = raise_for_failure(create_with_retry(db, lambda: lifecycle.create_credit_note(record_id)))
    return _response(record)


@router.get("/{kind}/{record_id}/calculation")
def get_calculation_details(kind: RecordKind, record_id: int, db: Session = Depends(get_db)):
    return calculation_details(_get_record_or_404(kind, record_id, db))
