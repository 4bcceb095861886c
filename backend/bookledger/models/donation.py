import datetime as dt
from decimal import Decimal
from typing import Literal, get_args

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from bookledger.db.base import Base


DonationType = Literal["Cash", "Credit Card", "Bank Transfer", "Check", "Online", "Goods", "Stocks", "Other"]
DONATION_TYPES = get_args(DonationType)


class Donation(Base):
    __tablename__ = "donations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    charity: Mapped[str] = mapped_column(String(200), nullable=False)
    donation_type: Mapped[str] = mapped_column(String(40), nullable=False, default="Cash")
    method: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=lambda: dt.datetime.now(dt.timezone.utc))
