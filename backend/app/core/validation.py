"""
Failure values returned by the fiscal engine.
Business outcomes are returned, never raised, so callers can map them to
their own transport (HTTP 422 / 409 / 404 in the API layer).
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum


class FailureKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    code: str
    message: str
    field: str | None = None


def validation_error(code: str, message: str, field: str | None = None) -> Failure:
    return Failure(FailureKind.VALIDATION, code, message, field)


def conflict(code: str, message: str, field: str | None = None) -> Failure:
    return Failure(FailureKind.CONFLICT, code, message, field)


def not_found(message: str = "No se encontró el registro solicitado.") -> Failure:
    return Failure(FailureKind.NOT_FOUND, "RECORD_NOT_FOUND", message)


def validate_required(data: dict, fields: tuple[str, ...]) -> Failure | None:
    for name in fields:
        if data.get(name) in (None, ""):
            return validation_error(
                "MISSING_FIELD",
                f"El campo '{name}' es obligatorio.",
                field=name,
            )
    return None


def validate_proportional_fields(
    is_proportional: bool,
    start: date | None,
    end: date | None,
) -> Failure | None:
    """
    Proportional records need both dates and a strictly increasing range.
    Non-proportional records are not checked.
    """
    if not is_proportional:
        return None

    if start is None or end is None:
        return validation_error(
            "PROPORTIONAL_DATES_REQUIRED",
            "Las facturas proporcionales requieren fecha de inicio y fin.",
            field="period_start" if start is None else "period_end",
        )

    if start >= end:
        return validation_error(
            "PROPORTIONAL_RANGE_INVALID",
            "La fecha de inicio debe ser anterior a la fecha de fin.",
            field="period_start",
        )

    return None
