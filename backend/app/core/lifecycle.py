"""
Invoice lifecycle: creation, update, status changes and credit notes for
issued invoices, received invoices and internal expenses.

The manager reads prior state through injected collaborators (record store,
ownership links, counterparty directory, sequence generator) and returns either
the persisted FiscalRecord or a Failure. It never raises for business outcomes.
"""
import logging
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Protocol

from app.core.fiscal import FiscalAmounts, compute_fiscal_amounts
from app.core.numbering import NumberSource, SequenceGenerator
from app.core.ownership import OwnershipRepository, resolve_ownership_share
from app.core.proration import corresponding_month, describe_period, prorate_base
from app.core.records import (
    FiscalRecord,
    RecordKind,
    RecordStatus,
    allowed_statuses,
)
from app.core.recurrence import next_occurrence, validate_recurrence
from app.core.validation import (
    Failure,
    conflict,
    not_found,
    validate_proportional_fields,
    validate_required,
    validation_error,
)

logger = logging.getLogger(__name__)

FISCAL_FIELDS = ("base_amount", "vat_rate", "withholding_rate", "is_proportional", "period_start", "period_end")
EDITABLE_FIELDS = (
    "external_number",
    "counterparty_id",
    "counterparty_name",
    "description",
    "record_date",
    "due_date",
    "deductible",
)
# May be changed on update, never cleared.
NON_NULLABLE_FIELDS = ("base_amount", "vat_rate", "withholding_rate", "record_date", "is_proportional", "deductible")

# Only invoices are limited to one per owner/property/counterparty and month.
UNIQUE_PER_PERIOD = (RecordKind.ISSUED, RecordKind.RECEIVED)


class RecordRepository(NumberSource, Protocol):
    def get(self, record_id: int) -> FiscalRecord | None: ...

    def find_existing_for_period(
        self,
        kind: RecordKind,
        owner_id: int | None,
        property_id: int | None,
        counterparty_id: int | None,
        month: str,
    ) -> FiscalRecord | None: ...

    def find_by_record_number(self, kind: RecordKind, record_number: str) -> FiscalRecord | None: ...

    def find_by_original(self, record_id: int) -> FiscalRecord | None: ...

    def add(self, record: FiscalRecord) -> FiscalRecord: ...

    def save(self, record: FiscalRecord) -> FiscalRecord: ...


class CounterpartyDirectory(Protocol):
    def get_payment_terms(self, kind: RecordKind, counterparty_id: int) -> int | None: ...


def _decimal(value, default: str = "0") -> Decimal:
    return Decimal(str(value)) if value not in (None, "") else Decimal(default)


def _negative(value: Decimal | None) -> Decimal | None:
    return -abs(value) if value is not None else None


def _required_fields(kind: RecordKind) -> tuple[str, ...]:
    if kind is RecordKind.ISSUED:
        return ("counterparty_id", "property_id", "record_date")
    if kind is RecordKind.RECEIVED:
        return ("counterparty_id", "record_date")
    return ("record_date",)


class InvoiceLifecycleManager:
    def __init__(
        self,
        records: RecordRepository,
        ownership: OwnershipRepository,
        counterparties: CounterpartyDirectory,
        sequence: SequenceGenerator,
        clock: Callable[[], date] = date.today,
        default_payment_terms: int = 30,
    ):
        self.records = records
        self.ownership = ownership
        self.counterparties = counterparties
        self.sequence = sequence
        self.clock = clock
        self.default_payment_terms = default_payment_terms

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_record(self, kind: RecordKind, data: dict) -> FiscalRecord | Failure:
        kind = RecordKind(kind)

        failure = validate_required(data, _required_fields(kind))
        if failure:
            return failure

        base = _decimal(data.get("base_amount"))
        if base < 0:
            return validation_error(
                "INVALID_AMOUNT", "La base imponible no puede ser negativa.", field="base_amount"
            )

        is_proportional = bool(data.get("is_proportional"))
        start, end = data.get("period_start"), data.get("period_end")
        failure = validate_proportional_fields(is_proportional, start, end)
        if failure:
            return failure

        is_recurring = bool(data.get("is_recurring"))
        failure = validate_recurrence(
            is_recurring, data.get("recurrence_period"), data.get("next_occurrence_date")
        )
        if failure:
            return failure

        record_date: date = data["record_date"]
        owner_id = data.get("owner_id")
        property_id = data.get("property_id")
        counterparty_id = data.get("counterparty_id")

        if kind in UNIQUE_PER_PERIOD:
            month = corresponding_month(record_date)
            existing = self.records.find_existing_for_period(
                kind, owner_id, property_id, counterparty_id, month
            )
            if existing is not None:
                logger.warning(
                    "Rejected %s record: %s already exists for owner=%s property=%s counterparty=%s in %s",
                    kind.value, existing.record_number, owner_id, property_id, counterparty_id, month,
                )
                return conflict(
                    "RECORD_DUPLICATE_PERIOD",
                    "Ya existe una factura para este propietario, inmueble y contraparte en el mismo mes.",
                )

        ownership_share = (
            resolve_ownership_share(self.ownership, property_id, owner_id) if owner_id else None
        )

        amounts = compute_fiscal_amounts(
            base,
            _decimal(data.get("vat_rate")),
            _decimal(data.get("withholding_rate")),
            is_proportional,
            start,
            end,
        )

        recurrence_period = data.get("recurrence_period") if is_recurring else None
        next_date = data.get("next_occurrence_date")
        if is_recurring and next_date is None:
            next_date = next_occurrence(record_date, recurrence_period)

        record = FiscalRecord(
            kind=kind,
            counterparty_id=counterparty_id,
            counterparty_name=data.get("counterparty_name"),
            record_date=record_date,
            record_number=self.sequence.next_number((kind, False)),
            external_number=data.get("external_number"),
            description=data.get("description"),
            is_proportional=is_proportional,
            period_start=start,
            period_end=end,
            corresponding_month=corresponding_month(record_date, data.get("corresponding_month")),
            due_date=data.get("due_date") or self._default_due_date(kind, counterparty_id, record_date),
            property_id=property_id,
            owner_id=owner_id,
            ownership_share=ownership_share,
            deductible=bool(data.get("deductible", True)),
            is_recurring=is_recurring,
            recurrence_period=recurrence_period,
            next_occurrence_date=next_date,
        )
        self._apply_amounts(record, amounts, base)

        created = self.records.add(record)
        logger.info(
            "Created %s record %s (total %s)", kind.value, created.record_number, created.total_amount
        )
        return created

    def _default_due_date(self, kind: RecordKind, counterparty_id: int | None, record_date: date) -> date:
        terms = None
        if counterparty_id is not None:
            terms = self.counterparties.get_payment_terms(kind, counterparty_id)
        if terms is None:
            terms = self.default_payment_terms
        return record_date + timedelta(days=terms)

    @staticmethod
    def _apply_amounts(record: FiscalRecord, amounts: FiscalAmounts, original_base: Decimal) -> None:
        record.original_base = original_base
        record.base_amount = amounts.base
        record.vat_rate = amounts.vat_rate
        record.vat_amount = amounts.vat_amount
        record.withholding_rate = amounts.withholding_rate
        record.withholding_amount = amounts.withholding_amount
        record.total_amount = amounts.total

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_record(self, record_id: int, changes: dict) -> FiscalRecord | Failure:
        existing = self.records.get(record_id)
        if existing is None:
            return not_found()

        if existing.is_settled:
            return conflict(
                "RECORD_LOCKED",
                f"El registro {existing.record_number} ya está liquidado y no admite cambios.",
            )

        for name in NON_NULLABLE_FIELDS:
            if name in changes and changes[name] is None:
                return validation_error(
                    "MISSING_FIELD",
                    f"El campo '{name}' no puede quedar vacío.",
                    field=name,
                )

        def merged(name):
            return changes[name] if name in changes else getattr(existing, name)

        is_proportional = bool(merged("is_proportional"))
        start, end = merged("period_start"), merged("period_end")
        failure = validate_proportional_fields(is_proportional, start, end)
        if failure:
            return failure

        new_number = changes.get("record_number")
        if new_number and new_number != existing.record_number:
            clash = self.records.find_by_record_number(existing.kind, new_number)
            if clash is not None:
                return conflict(
                    "RECORD_NUMBER_DUPLICATE",
                    "Ya existe una factura con este número en el sistema.",
                    field="record_number",
                )

        updated = replace(existing)
        if new_number:
            updated.record_number = new_number

        for name in EDITABLE_FIELDS:
            if name in changes:
                setattr(updated, name, changes[name])

        if "owner_id" in changes or "property_id" in changes:
            updated.owner_id = merged("owner_id")
            updated.property_id = merged("property_id")
            if (updated.owner_id, updated.property_id) != (existing.owner_id, existing.property_id):
                updated.ownership_share = (
                    resolve_ownership_share(self.ownership, updated.property_id, updated.owner_id)
                    if updated.owner_id
                    else None
                )

        if any(name in changes for name in FISCAL_FIELDS):
            stored_base = existing.original_base if existing.original_base is not None else existing.base_amount
            base = _decimal(changes.get("base_amount", abs(stored_base)))
            amounts = compute_fiscal_amounts(
                base,
                _decimal(merged("vat_rate")),
                _decimal(merged("withholding_rate")),
                is_proportional,
                start,
                end,
            )
            self._apply_amounts(updated, amounts, base)
            updated.is_proportional = is_proportional
            updated.period_start = start
            updated.period_end = end
            if updated.is_credit_note:
                self._invert(updated)

        if "corresponding_month" in changes:
            updated.corresponding_month = changes["corresponding_month"]
        elif "record_date" in changes:
            updated.corresponding_month = corresponding_month(updated.record_date)

        return self.records.save(updated)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def update_status(
        self,
        record_id: int,
        status: str,
        settled_on: date | None = None,
        reference: str | None = None,
    ) -> FiscalRecord | Failure:
        existing = self.records.get(record_id)
        if existing is None:
            return not_found()

        try:
            new_status = RecordStatus(status)
        except ValueError:
            new_status = None
        if new_status is None or new_status not in allowed_statuses(existing.kind):
            return validation_error(
                "INVALID_STATUS",
                f"Estado '{status}' no válido para registros de tipo {existing.kind.value}.",
                field="status",
            )

        if existing.is_settled:
            return conflict(
                "RECORD_LOCKED",
                f"El registro {existing.record_number} ya está liquidado.",
            )

        updated = replace(existing, status=new_status)
        if new_status is existing.terminal_status:
            updated.settled_on = settled_on or self.clock()
            updated.settlement_reference = reference
        elif new_status is RecordStatus.PENDING:
            updated.settled_on = None
            updated.settlement_reference = None

        return self.records.save(updated)

    # ------------------------------------------------------------------
    # Credit notes
    # ------------------------------------------------------------------

    def create_credit_note(self, original_id: int) -> FiscalRecord | Failure:
        original = self.records.get(original_id)
        if original is None:
            return not_found("No se encontró la factura original.")

        if original.is_credit_note:
            return conflict(
                "CREDIT_NOTE_OF_CREDIT_NOTE",
                "No se puede crear un abono de otro abono.",
                field="original_record_id",
            )

        previous = self.records.find_by_original(original.id)
        if previous is not None:
            # allowed, but worth a trace: several credit notes against one original
            logger.warning(
                "Record %s already has credit note %s", original.record_number, previous.record_number
            )

        credit_note = FiscalRecord(
            kind=original.kind,
            counterparty_id=original.counterparty_id,
            counterparty_name=original.counterparty_name,
            record_date=self.clock(),
            record_number=self.sequence.next_number((original.kind, True)),
            description=f"Abono de factura {original.record_number}",
            base_amount=original.base_amount,
            original_base=original.original_base,
            vat_rate=original.vat_rate,
            vat_amount=original.vat_amount,
            withholding_rate=original.withholding_rate,
            withholding_amount=original.withholding_amount,
            total_amount=original.total_amount,
            is_credit_note=True,
            original_record_id=original.id,
            is_proportional=original.is_proportional,
            period_start=original.period_start,
            period_end=original.period_end,
            corresponding_month=original.corresponding_month,
            property_id=original.property_id,
            owner_id=original.owner_id,
            ownership_share=original.ownership_share,
            deductible=original.deductible,
        )
        self._invert(credit_note)

        created = self.records.add(credit_note)
        logger.info("Created credit note %s for %s", created.record_number, original.record_number)
        return created

    @staticmethod
    def _invert(record: FiscalRecord) -> None:
        record.base_amount = _negative(record.base_amount)
        record.original_base = _negative(record.original_base)
        record.vat_amount = _negative(record.vat_amount)
        record.withholding_amount = _negative(record.withholding_amount)
        record.total_amount = _negative(record.total_amount)


def calculation_details(record: FiscalRecord) -> dict:
    """Display data for how a record's base was derived."""
    if not record.is_proportional:
        return {"type": "normal", "message": "Esta factura usa cálculo normal (mes completo)"}

    base = record.original_base if record.original_base is not None else record.base_amount
    proration = prorate_base(abs(base), record.period_start, record.period_end)
    return {
        "type": "proportional",
        "period": describe_period(record.period_start, record.period_end),
        "original_base": proration.original_base,
        "prorated_base": proration.prorated_base,
        "days_billed": proration.days_billed,
        "days_in_month": proration.days_in_month,
        "proportion_percentage": proration.proportion_percentage,
    }
