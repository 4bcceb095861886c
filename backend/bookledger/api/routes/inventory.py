from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from bookledger.api.deps import get_current_user, log_action
from bookledger.api.formatting import money, percent, resolve_range, transaction_to_dict
from bookledger.core.config import get_settings
from bookledger.core.exceptions import ValidationError
from bookledger.db.session import get_db
from bookledger.models.inventory import InventorySale
from bookledger.models.user import User
from bookledger.schemas.inventory import PurchaseCreateRequest, SaleCreateRequest
from bookledger.services.inventory import (
    AllocationPolicy,
    compute_batch_stock,
    group_sales_by_batch,
    inventory_valuation,
    list_available_batches,
    margin_percent,
    sales_totals,
    unit_cost,
)
from bookledger.services.ledger import create_purchase, owned_purchases, owned_sales, record_inventory_sale


router = APIRouter()


def configured_policy() -> AllocationPolicy:
    raw = get_settings().allocation_policy.lower()
    try:
        return AllocationPolicy(raw)
    except ValueError as exc:
        raise ValidationError(f"Unknown allocation policy {raw!r}") from exc


def purchase_to_dict(batch) -> dict:
    return {
        "id": batch.id,
        "item_name": batch.item_name,
        "purchase_date": batch.purchase_date.isoformat(),
        "quantity": batch.quantity,
        "unit_cost": money(batch.unit_cost),
        "shipping_cost": money(batch.shipping_cost),
        "total_cost": money(batch.total_cost),
        "cost_per_unit": money(unit_cost(batch)),
        "notes": batch.notes,
    }


def sale_to_dict(sale) -> dict:
    return {
        "id": sale.id,
        "purchase_id": sale.purchase_id,
        "item_name": sale.purchase.item_name if sale.purchase else "",
        "sale_date": sale.sale_date.isoformat(),
        "quantity_sold": sale.quantity_sold,
        "sale_price": money(sale.sale_price),
        "revenue": money(sale.revenue),
        "cogs": money(sale.cogs),
        "profit": money(sale.profit),
        "margin_pct": percent(margin_percent(sale.profit, sale.revenue)),
        "notes": sale.notes,
    }


@router.get("")
def inventory_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    batches = owned_purchases(db, current_user.id)
    sales = owned_sales(db, current_user.id)
    sales_by_batch = group_sales_by_batch(sales)

    rows: list[dict] = []
    for batch in batches:
        stock = compute_batch_stock(batch, sales_by_batch.get(batch.id, []))
        rows.append(
            {
                **purchase_to_dict(batch),
                "sold_count": stock.sold_count,
                "remaining_stock": stock.remaining_stock,
                "total_value": money(stock.total_value),
                "status": "OVERSOLD" if stock.remaining_stock < 0 else ("SOLD OUT" if stock.remaining_stock == 0 else "IN STOCK"),
            }
        )

    valuation = inventory_valuation(batches, sales)
    return {
        "valuation": {
            "total_invested": money(valuation.total_invested),
            "units_purchased": valuation.units_purchased,
            "units_sold": valuation.units_sold,
            "units_on_hand": valuation.units_on_hand,
            "current_value": money(valuation.current_value),
        },
        "batches": rows,
    }


@router.get("/available")
def available_batches(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[dict]:
    available = list_available_batches(owned_purchases(db, current_user.id), owned_sales(db, current_user.id))
    return [
        {
            **purchase_to_dict(item.batch),
            "available_quantity": item.available_quantity,
        }
        for item in available
    ]


@router.post("/purchases", status_code=201)
def add_purchase(
    payload: PurchaseCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    batch = create_purchase(
        db,
        current_user.id,
        item_name=payload.item_name,
        purchase_date=payload.purchase_date,
        quantity=payload.quantity,
        unit_cost=payload.unit_cost,
        shipping_cost=payload.shipping_cost,
        notes=payload.notes,
    )
    log_action(db, current_user.id, "create", "inventory_purchase", f"{batch.item_name} x{batch.quantity} total {batch.total_cost}")
    return {"message": "Inventory purchase recorded!", "purchase": purchase_to_dict(batch)}


@router.post("/sales", status_code=201)
def add_sale(
    payload: SaleCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    recorded = record_inventory_sale(
        db,
        current_user.id,
        purchase_id=payload.purchase_id,
        quantity=payload.quantity_sold,
        sale_price=payload.sale_price,
        sale_date=payload.sale_date,
        notes=payload.notes,
        policy=configured_policy(),
    )
    sale = recorded.sale
    log_action(db, current_user.id, "create", "inventory_sale", f"Batch #{sale.purchase_id} x{sale.quantity_sold} revenue {sale.revenue}")
    return {
        "message": "Sale recorded!",
        "sale": sale_to_dict(sale),
        "income_transaction": transaction_to_dict(recorded.income),
    }


@router.get("/sales/report")
def sales_report(
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    start, end = resolve_range(from_date, to_date)
    sales = fetch_sales_in_range(db, current_user.id, start, end)
    totals = sales_totals(sales)
    return {
        "range_from": start.isoformat(),
        "range_to": end.isoformat(),
        "totals": {
            "quantity": totals.quantity,
            "revenue": money(totals.revenue),
            "cogs": money(totals.cogs),
            "profit": money(totals.profit),
            "margin_pct": percent(totals.margin_percent),
        },
        "sales": [sale_to_dict(sale) for sale in sales],
    }


def fetch_sales_in_range(db: Session, user_id: int, start: date, end: date) -> list[InventorySale]:
    return list(
        db.scalars(
            select(InventorySale)
            .options(joinedload(InventorySale.purchase))
            .where(InventorySale.user_id == user_id)
            .where(InventorySale.sale_date >= start)
            .where(InventorySale.sale_date <= end)
            .order_by(InventorySale.sale_date.desc(), InventorySale.id.desc())
        ).all()
    )
