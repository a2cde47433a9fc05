"""
Ownership allocation: which owners a record's amounts belong to, and in what share.

Three cases, checked in order:
  1. the record carries an owner and a positive ownership share → that owner only;
  2. the record is not tied to any property (company-wide) → equal split
     across the whole owner roster;
  3. otherwise (property without a resolvable owner link) → nobody.
"""
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Protocol

from app.core.records import FiscalRecord

HUNDRED = Decimal("100")


class OwnershipRepository(Protocol):
    def get_ownership_share(self, property_id: int, owner_id: int) -> Decimal | None: ...


@dataclass(frozen=True)
class OwnerRef:
    id: int
    name: str = ""


class OwnerRoster(Protocol):
    def list_owners(self) -> list[OwnerRef]: ...


@dataclass(frozen=True)
class Allocation:
    owner_id: int
    share: Decimal  # percentage, 0-100

    @property
    def fraction(self) -> Decimal:
        return self.share / HUNDRED

    def apply(self, amount: Decimal) -> Decimal:
        return Decimal(str(amount)) * self.fraction


def equal_split(owner_ids: list[int]) -> list[Allocation]:
    """
    Split 100 % across owners in cent-of-a-percent steps.
    The first N-1 owners get floor(10000 / N) / 100 each and the last one the
    remainder, so the shares always add up to exactly 100.00.
    """
    if not owner_ids:
        return []

    count = len(owner_ids)
    base_share = (Decimal(10000) / count).quantize(Decimal("1"), rounding=ROUND_DOWN) / HUNDRED
    remainder = HUNDRED - base_share * (count - 1)

    allocations = [Allocation(owner_id, base_share) for owner_id in owner_ids[:-1]]
    allocations.append(Allocation(owner_ids[-1], remainder))
    return allocations


def allocate(record: FiscalRecord, owners: list[OwnerRef]) -> list[Allocation]:
    share = record.ownership_share or Decimal("0")
    if record.owner_id and share > 0:
        return [Allocation(record.owner_id, Decimal(str(share)))]

    if record.property_id is None:
        return equal_split([o.id for o in owners])

    return []


def resolve_ownership_share(
    repo: OwnershipRepository,
    property_id: int | None,
    owner_id: int | None,
) -> Decimal:
    """Direct property/owner link lookup; 0 when either side is missing or unlinked."""
    if property_id is None or owner_id is None:
        return Decimal("0")
    share = repo.get_ownership_share(property_id, owner_id)
    return Decimal(str(share)) if share is not None else Decimal("0")
