from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class PurchaseCreateRequest(BaseModel):
    item_name: str = Field(min_length=1, max_length=200)
    purchase_date: date
    quantity: int = Field(gt=0)
    unit_cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    notes: str = Field(default="", max_length=500)


class SaleCreateRequest(BaseModel):
    purchase_id: int | None = None
    sale_date: date | None = None
    quantity_sold: int = Field(gt=0)
    sale_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    notes: str = Field(default="", max_length=500)
