from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


class Invoice(Base):
    """Issued invoice, received invoice or internal expense, told apart by `kind`."""

    __tablename__ = "fiscal_records"
    __table_args__ = (UniqueConstraint("kind", "record_number", name="uq_record_number"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # kind: 'issued' | 'received' | 'internal'
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    record_number: Mapped[str] = mapped_column(String(30), nullable=False)
    external_number: Mapped[str | None] = mapped_column(String(50))
    counterparty_id: Mapped[int | None] = mapped_column(Integer, index=True)
    counterparty_name: Mapped[str | None] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    record_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    base_amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    original_base: Mapped[float | None] = mapped_column(Numeric(12, 2))
    vat_rate: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    vat_amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    withholding_rate: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    withholding_amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    is_credit_note: Mapped[bool] = mapped_column(Boolean, default=False)
    original_record_id: Mapped[int | None] = mapped_column(ForeignKey("fiscal_records.id"))

    is_proportional: Mapped[bool] = mapped_column(Boolean, default=False)
    period_start: Mapped[date | None] = mapped_column(Date)
    period_end: Mapped[date | None] = mapped_column(Date)
    corresponding_month: Mapped[str | None] = mapped_column(String(7))  # YYYY-MM

    # status: 'pending' | 'collected' | 'paid' | 'disputed'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    due_date: Mapped[date | None] = mapped_column(Date)
    settled_on: Mapped[date | None] = mapped_column(Date)
    settlement_reference: Mapped[str | None] = mapped_column(String(100))

    property_id: Mapped[int | None] = mapped_column(ForeignKey("estates.id"), index=True)
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("owners.id"), index=True)
    ownership_share: Mapped[float | None] = mapped_column(Numeric(5, 2))
    deductible: Mapped[bool] = mapped_column(Boolean, default=True)

    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    recurrence_period: Mapped[str | None] = mapped_column(String(20))
    next_occurrence_date: Mapped[date | None] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
