"""
Inventory cost accounting over immutable purchase batches.

Nothing here touches the database. Stock on hand is always recomputed from a
batch and the sales that reference it, so there is no counter to drift.
Functions accept ORM rows or any object exposing the same attributes.
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from bookledger.core.exceptions import InsufficientStock, ValidationError


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def batch_total_cost(quantity: int, unit_cost: Any, shipping_cost: Any) -> Decimal:
    return quantize_money(quantity * to_decimal(unit_cost) + to_decimal(shipping_cost))


def unit_cost(batch: Any) -> Decimal:
    # A zero-quantity batch cannot be created through the API; older rows still price at 0.
    if not batch.quantity:
        return ZERO
    return to_decimal(batch.total_cost) / batch.quantity


def margin_percent(profit: Decimal, revenue: Decimal) -> Decimal:
    if revenue <= 0:
        return ZERO
    return profit / revenue * HUNDRED


@dataclass(frozen=True)
class BatchStock:
    sold_count: int
    remaining_stock: int
    unit_cost: Decimal
    total_value: Decimal


@dataclass(frozen=True)
class AvailableBatch:
    batch: Any
    available_quantity: int
    unit_cost: Decimal


@dataclass(frozen=True)
class SaleFigures:
    revenue: Decimal
    cogs: Decimal
    profit: Decimal
    margin_percent: Decimal


@dataclass(frozen=True)
class InventoryValuation:
    total_invested: Decimal
    units_purchased: int
    units_sold: int
    units_on_hand: int
    current_value: Decimal


@dataclass(frozen=True)
class SalesTotals:
    quantity: int
    revenue: Decimal
    cogs: Decimal
    profit: Decimal
    margin_percent: Decimal


class AllocationPolicy(str, enum.Enum):
    """How a sale picks its batch when the caller does not name one."""

    MANUAL = "manual"
    NEWEST = "newest"
    OLDEST = "oldest"


def compute_batch_stock(batch: Any, sales_for_batch: Iterable[Any]) -> BatchStock:
    sold_count = sum(sale.quantity_sold for sale in sales_for_batch)
    remaining = batch.quantity - sold_count
    if remaining < 0:
        logger.warning(
            "Batch oversold",
            extra={"purchase_id": batch.id, "quantity": batch.quantity, "sold_count": sold_count},
        )
    cost = unit_cost(batch)
    return BatchStock(
        sold_count=sold_count,
        remaining_stock=remaining,
        unit_cost=cost,
        total_value=remaining * cost,
    )


def group_sales_by_batch(sales: Iterable[Any]) -> dict[int, list[Any]]:
    grouped: dict[int, list[Any]] = defaultdict(list)
    for sale in sales:
        grouped[sale.purchase_id].append(sale)
    return grouped


def _newest_first(batches: Iterable[Any]) -> list[Any]:
    return sorted(batches, key=lambda b: (b.purchase_date, b.id or 0), reverse=True)


def list_available_batches(all_batches: Iterable[Any], all_sales: Iterable[Any]) -> list[AvailableBatch]:
    """Batches with stock left, most recent purchase first."""
    sales_by_batch = group_sales_by_batch(all_sales)
    available: list[AvailableBatch] = []
    for batch in _newest_first(all_batches):
        stock = compute_batch_stock(batch, sales_by_batch.get(batch.id, []))
        if stock.remaining_stock > 0:
            available.append(
                AvailableBatch(batch=batch, available_quantity=stock.remaining_stock, unit_cost=stock.unit_cost)
            )
    return available


def price_sale(
    batch: Any,
    sales_for_batch: Iterable[Any],
    requested_quantity: int,
    sale_price: Any,
) -> SaleFigures:
    """Revenue, COGS, profit and margin for selling ``requested_quantity`` units out of ``batch``.

    Raises InsufficientStock when the batch does not have that many units left.
    """
    if requested_quantity <= 0:
        raise ValidationError("Quantity sold must be greater than zero.")
    price = to_decimal(sale_price)
    if price < 0:
        raise ValidationError("Sale price cannot be negative.")

    stock = compute_batch_stock(batch, sales_for_batch)
    if requested_quantity > stock.remaining_stock:
        raise InsufficientStock(requested=requested_quantity, available=max(stock.remaining_stock, 0))

    revenue = requested_quantity * price
    cogs = requested_quantity * stock.unit_cost
    profit = revenue - cogs
    return SaleFigures(
        revenue=revenue,
        cogs=cogs,
        profit=profit,
        margin_percent=margin_percent(profit, revenue),
    )


def inventory_valuation(batches: Sequence[Any], sales: Iterable[Any]) -> InventoryValuation:
    sales_by_batch = group_sales_by_batch(sales)
    units_sold = 0
    units_on_hand = 0
    current_value = ZERO
    for batch in batches:
        stock = compute_batch_stock(batch, sales_by_batch.get(batch.id, []))
        units_sold += stock.sold_count
        units_on_hand += stock.remaining_stock
        current_value += stock.total_value
    return InventoryValuation(
        total_invested=sum((to_decimal(b.total_cost) for b in batches), ZERO),
        units_purchased=sum(b.quantity for b in batches),
        units_sold=units_sold,
        units_on_hand=units_on_hand,
        current_value=current_value,
    )


def sales_totals(sales: Iterable[Any]) -> SalesTotals:
    quantity = 0
    revenue = cogs = profit = ZERO
    for sale in sales:
        quantity += sale.quantity_sold
        revenue += to_decimal(sale.revenue)
        cogs += to_decimal(sale.cogs)
        profit += to_decimal(sale.profit)
    return SalesTotals(
        quantity=quantity,
        revenue=revenue,
        cogs=cogs,
        profit=profit,
        margin_percent=margin_percent(profit, revenue),
    )


def pick_batch(available: Sequence[AvailableBatch], quantity: int, policy: AllocationPolicy) -> AvailableBatch:
    """Choose the batch a sale draws from when the caller left it to ``policy``."""
    if policy is AllocationPolicy.MANUAL:
        raise ValidationError("Select the purchase batch this sale draws from.")
    if not available:
        raise InsufficientStock(requested=quantity, available=0)

    ordered = list(available) if policy is AllocationPolicy.NEWEST else list(reversed(available))
    for candidate in ordered:
        if candidate.available_quantity >= quantity:
            return candidate
    raise InsufficientStock(requested=quantity, available=max(c.available_quantity for c in available))
