from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.database import Base


class Estate(Base):
    __tablename__ = "estates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    cadastral_reference: Mapped[str | None] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    owners: Mapped[list["OwnershipLink"]] = relationship(
        "OwnershipLink", back_populates="estate", cascade="all, delete-orphan"
    )


class OwnershipLink(Base):
    __tablename__ = "estates_owners"
    __table_args__ = (UniqueConstraint("estate_id", "owner_id", name="uq_estate_owner"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    estate_id: Mapped[int] = mapped_column(ForeignKey("estates.id"), nullable=False, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("owners.id"), nullable=False, index=True)
    # percentage 0-100; the sum per estate is not enforced
    ownership_percentage: Mapped[float] = mapped_column(Numeric(5, 2), nullable=False, default=100)

    estate: Mapped["Estate"] = relationship("Estate", back_populates="owners")
    owner: Mapped["Owner"] = relationship("Owner", back_populates="estates")  # noqa: F821
