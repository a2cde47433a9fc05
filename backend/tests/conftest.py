import os
import tempfile
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set env vars BEFORE any app imports
# backend/tests/conftest.py → ../../fiscal_constants
_here = Path(__file__).parent
_candidates = [
    _here.parent.parent / "fiscal_constants",  # project root (local)
    _here.parent / "fiscal_constants",         # inside backend dir
]
_constants_path = next((p for p in _candidates if p.exists()), _here.parent.parent / "fiscal_constants")
os.environ["FISCAL_CONSTANTS_PATH"] = str(_constants_path)

# Use a temp file-based SQLite so all connections share the same database
_db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_db_file.close()
_TEST_DB_URL = f"sqlite:///{_db_file.name}"
os.environ["DATABASE_URL"] = _TEST_DB_URL

from app.core.lifecycle import InvoiceLifecycleManager  # noqa: E402
from app.core.numbering import RepositorySequence  # noqa: E402
from app.core.ownership import OwnerRef  # noqa: E402
from app.core.records import FiscalRecord, RecordKind  # noqa: E402
from app.db.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402

_test_engine = create_engine(_TEST_DB_URL, connect_args={"check_same_thread": False})
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

TODAY = date(2025, 8, 20)


@pytest.fixture(autouse=True)
def setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=_test_engine)
    yield
    Base.metadata.drop_all(bind=_test_engine)


@pytest.fixture
def db():
    session = _TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# In-memory collaborators for the pure engine
# ---------------------------------------------------------------------------

class InMemoryRecords:
    def __init__(self):
        self.rows: dict[int, FiscalRecord] = {}
        self._next_id = 1

    def get(self, record_id):
        record = self.rows.get(record_id)
        return replace(record) if record else None

    def find_record_numbers(self, space, prefix):
        kind, is_credit_note = space
        return [
            r.record_number
            for r in self.rows.values()
            if r.kind is kind
            and r.is_credit_note == is_credit_note
            and (r.record_number or "").startswith(f"{prefix}-")
        ]

    def find_existing_for_period(self, kind, owner_id, property_id, counterparty_id, month):
        for r in self.rows.values():
            if (
                r.kind is kind
                and not r.is_credit_note
                and r.owner_id == owner_id
                and r.property_id == property_id
                and r.counterparty_id == counterparty_id
                and f"{r.record_date.year}-{r.record_date.month:02d}" == month
            ):
                return r
        return None

    def find_by_record_number(self, kind, record_number):
        return next(
            (r for r in self.rows.values() if r.kind is kind and r.record_number == record_number),
            None,
        )

    def find_by_original(self, record_id):
        return next((r for r in self.rows.values() if r.original_record_id == record_id), None)

    def add(self, record):
        record = replace(record, id=self._next_id)
        self._next_id += 1
        self.rows[record.id] = record
        return replace(record)

    def save(self, record):
        self.rows[record.id] = replace(record)
        return replace(record)


class InMemoryOwnership:
    def __init__(self, shares: dict | None = None):
        self.shares = shares or {}

    def get_ownership_share(self, property_id, owner_id):
        return self.shares.get((property_id, owner_id))


class InMemoryCounterparties:
    def __init__(self, terms: dict | None = None):
        self.terms = terms or {}

    def get_payment_terms(self, kind, counterparty_id):
        return self.terms.get((kind, counterparty_id))


class InMemoryRoster:
    def __init__(self, owners: list[OwnerRef]):
        self.owners = owners

    def list_owners(self):
        return list(self.owners)


@pytest.fixture
def records_store():
    return InMemoryRecords()


@pytest.fixture
def lifecycle(records_store):
    return InvoiceLifecycleManager(
        records=records_store,
        ownership=InMemoryOwnership({(10, 1): Decimal("60"), (10, 2): Decimal("40")}),
        counterparties=InMemoryCounterparties({(RecordKind.RECEIVED, 7): 45}),
        sequence=RepositorySequence(records_store),
        clock=lambda: TODAY,
    )
