"""
Writes against the ledger store.

Every write funnels through :func:`commit` so a rejected insert or update is
rolled back and reported as ``StoreWriteError`` with the database message.
A sale and the income transaction it earns are committed together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookledger.core.exceptions import NotFoundError, PartialWriteError, StoreWriteError, ValidationError
from bookledger.models.inventory import InventoryPurchase, InventorySale
from bookledger.models.transaction import INCOME, Transaction
from bookledger.services import receipts
from bookledger.services.inventory import (
    AllocationPolicy,
    SaleFigures,
    batch_total_cost,
    list_available_batches,
    pick_batch,
    price_sale,
    quantize_money,
    to_decimal,
)


logger = logging.getLogger(__name__)

BOOK_SALES = "Book Sales"


def _store_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def commit(db: Session, *rows: Any) -> None:
    if rows:
        db.add_all(rows)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Ledger write rejected", exc_info=exc)
        raise StoreWriteError(_store_message(exc)) from exc
    for row in rows:
        db.refresh(row)


@dataclass(frozen=True)
class PendingReceipt:
    bucket: str
    path: str
    content: bytes
    content_type: str


async def save_with_receipt(db: Session, row: Any, receipt: PendingReceipt | None) -> None:
    """Upload ``receipt`` (if any), point ``row.receipt_url`` at it and insert ``row``.

    When the insert fails the uploaded object is removed again; if that removal
    fails as well the object is orphaned and PartialWriteError names it.
    """
    if receipt is None:
        commit(db, row)
        return

    row.receipt_url = await receipts.upload_receipt(
        receipt.bucket, receipt.path, receipt.content, receipt.content_type
    )
    try:
        commit(db, row)
    except StoreWriteError as exc:
        try:
            await receipts.delete_receipt(receipt.bucket, receipt.path)
        except StoreWriteError:
            logger.error("Orphaned receipt", extra={"bucket": receipt.bucket, "path": receipt.path})
            raise PartialWriteError(
                f"{exc.message} The uploaded receipt could not be removed.",
                orphaned=f"{receipt.bucket}/{receipt.path}",
            ) from exc
        raise


def create_purchase(
    db: Session,
    user_id: int,
    item_name: str,
    purchase_date: date,
    quantity: int,
    unit_cost: Any,
    shipping_cost: Any = 0,
    notes: str = "",
) -> InventoryPurchase:
    name = item_name.strip()
    if not name:
        raise ValidationError("Item name is required.")
    if quantity <= 0:
        raise ValidationError("Quantity must be at least 1.")
    if to_decimal(unit_cost) < 0 or to_decimal(shipping_cost) < 0:
        raise ValidationError("Costs cannot be negative.")

    purchase = InventoryPurchase(
        user_id=user_id,
        item_name=name,
        purchase_date=purchase_date,
        quantity=quantity,
        unit_cost=quantize_money(to_decimal(unit_cost)),
        shipping_cost=quantize_money(to_decimal(shipping_cost)),
        total_cost=batch_total_cost(quantity, unit_cost, shipping_cost),
        notes=notes.strip(),
    )
    commit(db, purchase)
    logger.info("Inventory purchase recorded", extra={"purchase_id": purchase.id, "quantity": quantity})
    return purchase


def owned_purchases(db: Session, user_id: int) -> list[InventoryPurchase]:
    return list(
        db.scalars(
            select(InventoryPurchase)
            .where(InventoryPurchase.user_id == user_id)
            .order_by(InventoryPurchase.purchase_date.desc(), InventoryPurchase.id.desc())
        ).all()
    )


def owned_sales(db: Session, user_id: int) -> list[InventorySale]:
    return list(db.scalars(select(InventorySale).where(InventorySale.user_id == user_id)).all())


@dataclass(frozen=True)
class RecordedSale:
    sale: InventorySale
    income: Transaction
    figures: SaleFigures


def record_inventory_sale(
    db: Session,
    user_id: int,
    purchase_id: int | None,
    quantity: int,
    sale_price: Any,
    sale_date: date | None = None,
    notes: str = "",
    policy: AllocationPolicy = AllocationPolicy.MANUAL,
) -> RecordedSale:
    """Sell ``quantity`` units from one batch and post the matching Book Sales income.

    The batch row is locked for the duration so two concurrent sales cannot both
    pass the stock check. Sale and income are committed in one transaction.
    """
    if purchase_id is None:
        available = list_available_batches(owned_purchases(db, user_id), owned_sales(db, user_id))
        purchase_id = pick_batch(available, quantity, policy).batch.id

    batch = db.scalar(
        select(InventoryPurchase)
        .where(InventoryPurchase.id == purchase_id)
        .where(InventoryPurchase.user_id == user_id)
        .with_for_update()
    )
    if not batch:
        db.rollback()
        raise NotFoundError("Inventory purchase not found.")

    existing = db.scalars(select(InventorySale).where(InventorySale.purchase_id == batch.id)).all()
    try:
        figures = price_sale(batch, existing, quantity, sale_price)
    except ValidationError:
        db.rollback()
        raise

    revenue = quantize_money(figures.revenue)
    cogs = quantize_money(figures.cogs)
    sold_on = sale_date or datetime.now(timezone.utc).date()
    sale = InventorySale(
        user_id=user_id,
        purchase_id=batch.id,
        sale_date=sold_on,
        quantity_sold=quantity,
        sale_price=quantize_money(to_decimal(sale_price)),
        revenue=revenue,
        cogs=cogs,
        profit=revenue - cogs,
        notes=notes.strip(),
    )
    try:
        db.add(sale)
        db.flush()
        income = Transaction(
            user_id=user_id,
            date=sold_on,
            type=INCOME,
            amount=revenue,
            income_source=BOOK_SALES,
            description=f"Sold {quantity} {batch.item_name}"[:200],
            notes=sale.notes or f"Inventory sale ID: {sale.id}",
            inventory_sale_id=sale.id,
        )
        db.add(income)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Inventory sale rejected", exc_info=exc, extra={"purchase_id": purchase_id})
        raise StoreWriteError(_store_message(exc)) from exc

    db.refresh(sale)
    db.refresh(income)
    logger.info(
        "Inventory sale recorded",
        extra={"sale_id": sale.id, "purchase_id": batch.id, "quantity": quantity, "revenue": revenue},
    )
    return RecordedSale(sale=sale, income=income, figures=figures)
