"""
Sequential record numbering: PREFIX-0001, PREFIX-0002, ...

Each (kind, is_credit_note) pair is its own numbering space. The next number
is one past the highest suffix stored under its prefix, so the storage
boundary must serialise assignment (unique constraint on the number plus
retry on conflict).
"""
import re
from typing import Iterable, Protocol

from app.core.records import RecordKind

DEFAULT_PREFIXES = {
    (RecordKind.ISSUED, False): "FACT",
    (RecordKind.ISSUED, True): "ABONO",
    (RecordKind.RECEIVED, False): "FR",
    (RecordKind.RECEIVED, True): "ABFR",
    (RecordKind.INTERNAL, False): "GI",
    (RecordKind.INTERNAL, True): "ABGI",
}

NumberingSpace = tuple[RecordKind, bool]


class NumberSource(Protocol):
    def find_record_numbers(self, space: NumberingSpace, prefix: str) -> list[str]: ...


class SequenceGenerator(Protocol):
    def next_number(self, space: NumberingSpace) -> str: ...


def number_suffix(record_number: str | None, prefix: str) -> int | None:
    """Numeric suffix of `PREFIX-NNNN`, or None for a number outside that series."""
    if not record_number:
        return None
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d+)", record_number)
    return int(match.group(1)) if match else None


def next_record_number(numbers: Iterable[str | None], prefix: str, width: int = 4) -> str:
    """
    Next number of the `prefix` series. Numbers that were renamed by hand to
    something outside the series are ignored.
    """
    suffixes = [s for s in (number_suffix(n, prefix) for n in numbers) if s is not None]
    return f"{prefix}-{max(suffixes, default=0) + 1:0{width}d}"


class RepositorySequence:
    """Sequence generator backed by the numbers the repository already holds."""

    def __init__(self, source: NumberSource, prefixes: dict | None = None):
        self.source = source
        self.prefixes = {**DEFAULT_PREFIXES, **(prefixes or {})}

    def next_number(self, space: NumberingSpace) -> str:
        prefix = self.prefixes[space]
        return next_record_number(self.source.find_record_numbers(space, prefix), prefix)


def prefixes_from_constants(numbering: dict) -> dict:
    """
    Map the `numbering` section of the fiscal constants YAML
    ({"issued": {"invoice": "FACT", "credit_note": "ABONO"}, ...}) to numbering spaces.
    """
    prefixes = {}
    for kind in RecordKind:
        section = numbering.get(kind.value, {})
        if "invoice" in section:
            prefixes[(kind, False)] = section["invoice"]
        if "credit_note" in section:
            prefixes[(kind, True)] = section["credit_note"]
    return prefixes
