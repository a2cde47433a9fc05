"""
Engine and session factory for the back office store.

One database holds owners, estates and their ownership links, clients and
suppliers, and every fiscal record (issued invoices, received invoices and
internal expenses share the `fiscal_records` table, told apart by `kind`).
Record numbers are unique per kind, which is what lets concurrent creates
detect a clash and retry with the next number.
"""
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./backoffice.db")

# SQLite-specific connect args for thread safety
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    """Request-scoped session. Routers commit explicitly once the engine accepts a change."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create the owner, estate, counterparty and fiscal record tables if missing."""
    from app.models import counterparty, estate, invoice, owner  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Schema ready on %s", engine.url.render_as_string(hide_password=True))
