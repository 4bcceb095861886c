import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


IncomeSource = Literal["Subscriptions", "Book Sales", "Partner Spots"]


class IncomeCreateRequest(BaseModel):
    date: dt.date
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    income_source: IncomeSource = "Subscriptions"
    description: str = Field(default="", max_length=200)


class TransactionUpdateRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    category: str | None = Field(default=None, min_length=1, max_length=120)
