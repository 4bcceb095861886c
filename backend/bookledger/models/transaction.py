import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from bookledger.db.base import Base


INCOME = "Income"
EXPENSE = "Expense"
INCOME_SOURCES = ("Subscriptions", "Book Sales", "Partner Spots")
EXPENSE_CATEGORIES = (
    "Advertising and Promotion",
    "Business Meals",
    "Use of Car",
    "Business Travel",
    "Home Office",
    "Professional Services and Legal Fees",
    "Office Supplies",
    "Utilities",
    "Travel",
    "Software",
    "Cybersecurity",
    "Event sponsorships",
    "Other",
)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # Expense only
    category: Mapped[str | None] = mapped_column(String(120), nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(160), nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Income only
    income_source: Mapped[str | None] = mapped_column(String(40), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    inventory_sale_id: Mapped[int | None] = mapped_column(
        ForeignKey("inventory_sales.id"), nullable=True, unique=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=lambda: dt.datetime.now(dt.timezone.utc))
