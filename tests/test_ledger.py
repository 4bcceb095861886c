"""
Tests for the ledger write paths against a SQLite session.

Covers purchase validation, the sale plus income dual write and the receipt
compensation path for rows that fail to insert.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from bookledger.core.exceptions import (
    InsufficientStock,
    NotFoundError,
    PartialWriteError,
    StoreWriteError,
    ValidationError,
)
from bookledger.models.inventory import InventoryPurchase, InventorySale
from bookledger.models.transaction import EXPENSE, Transaction
from bookledger.services import ledger, receipts
from bookledger.services.inventory import AllocationPolicy


def count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


@pytest.fixture
def batch(db_session, owner) -> InventoryPurchase:
    return ledger.create_purchase(
        db_session,
        owner.id,
        item_name="Notebook",
        purchase_date=date(2025, 1, 15),
        quantity=10,
        unit_cost="2.00",
        shipping_cost="5.00",
    )


# =============================================================================
# Purchases
# =============================================================================


class TestCreatePurchase:

    def test_total_cost_is_stored(self, batch):
        assert batch.id is not None
        assert batch.total_cost == Decimal("25.00")
        assert batch.unit_cost == Decimal("2.00")

    def test_zero_quantity_rejected(self, db_session, owner):
        with pytest.raises(ValidationError, match="at least 1"):
            ledger.create_purchase(db_session, owner.id, "Pens", date(2025, 1, 1), 0, "1.00")
        assert count(db_session, InventoryPurchase) == 0

    def test_blank_name_rejected(self, db_session, owner):
        with pytest.raises(ValidationError, match="Item name"):
            ledger.create_purchase(db_session, owner.id, "   ", date(2025, 1, 1), 1, "1.00")

    def test_negative_cost_rejected(self, db_session, owner):
        with pytest.raises(ValidationError, match="negative"):
            ledger.create_purchase(db_session, owner.id, "Pens", date(2025, 1, 1), 1, "1.00", shipping_cost="-1")


# =============================================================================
# Sales
# =============================================================================


class TestRecordInventorySale:

    def test_sale_and_income_are_written_together(self, db_session, owner, batch):
        recorded = ledger.record_inventory_sale(
            db_session, owner.id, batch.id, quantity=4, sale_price="6.00", sale_date=date(2025, 2, 1)
        )
        sale, income = recorded.sale, recorded.income
        assert sale.revenue == Decimal("24.00")
        assert sale.cogs == Decimal("10.00")
        assert sale.profit == Decimal("14.00")
        assert income.type == "Income"
        assert income.income_source == "Book Sales"
        assert income.amount == Decimal("24.00")
        assert income.date == date(2025, 2, 1)
        assert income.description == "Sold 4 Notebook"
        assert income.notes == f"Inventory sale ID: {sale.id}"
        assert income.inventory_sale_id == sale.id

    def test_sale_notes_carry_to_income(self, db_session, owner, batch):
        recorded = ledger.record_inventory_sale(db_session, owner.id, batch.id, 1, "6.00", notes="Craft fair")
        assert recorded.income.notes == "Craft fair"

    def test_oversell_leaves_stock_untouched(self, db_session, owner, batch):
        with pytest.raises(InsufficientStock):
            ledger.record_inventory_sale(db_session, owner.id, batch.id, quantity=11, sale_price="6.00")
        assert count(db_session, InventorySale) == 0
        assert count(db_session, Transaction) == 0

    def test_stock_is_derived_across_sales(self, db_session, owner, batch):
        ledger.record_inventory_sale(db_session, owner.id, batch.id, 6, "5.00")
        with pytest.raises(InsufficientStock) as excinfo:
            ledger.record_inventory_sale(db_session, owner.id, batch.id, 5, "5.00")
        assert excinfo.value.available == 4

    def test_unknown_batch(self, db_session, owner):
        with pytest.raises(NotFoundError):
            ledger.record_inventory_sale(db_session, owner.id, 999, 1, "1.00")

    def test_other_users_batch_is_not_found(self, db_session, owner, batch):
        with pytest.raises(NotFoundError):
            ledger.record_inventory_sale(db_session, owner.id + 1, batch.id, 1, "1.00")

    def test_manual_policy_requires_batch(self, db_session, owner, batch):
        with pytest.raises(ValidationError, match="Select the purchase batch"):
            ledger.record_inventory_sale(db_session, owner.id, None, 1, "1.00")

    def test_oldest_policy_picks_batch(self, db_session, owner, batch):
        newer = ledger.create_purchase(db_session, owner.id, "Notebook", date(2025, 3, 1), 5, "3.00")
        recorded = ledger.record_inventory_sale(
            db_session, owner.id, None, 2, "6.00", policy=AllocationPolicy.OLDEST
        )
        assert recorded.sale.purchase_id == batch.id
        recorded = ledger.record_inventory_sale(
            db_session, owner.id, None, 2, "6.00", policy=AllocationPolicy.NEWEST
        )
        assert recorded.sale.purchase_id == newer.id

    def test_failed_income_insert_rolls_back_sale(self, db_session, owner, batch, monkeypatch):
        def broken_income(**fields):
            fields["type"] = None
            return Transaction(**fields)

        monkeypatch.setattr(ledger, "Transaction", broken_income)
        with pytest.raises(StoreWriteError):
            ledger.record_inventory_sale(db_session, owner.id, batch.id, 2, "6.00")
        assert count(db_session, InventorySale) == 0
        assert count(db_session, Transaction) == 0


# =============================================================================
# Receipt compensation
# =============================================================================


class TestSaveWithReceipt:

    pending = ledger.PendingReceipt(bucket="receipts", path="1/a.pdf", content=b"%PDF", content_type="application/pdf")

    def _expense(self, owner, amount=Decimal("12.00")):
        return Transaction(user_id=owner.id, date=date(2025, 3, 1), type=EXPENSE, amount=amount, category="Software")

    def test_without_receipt(self, db_session, owner):
        row = self._expense(owner)
        asyncio.run(ledger.save_with_receipt(db_session, row, None))
        assert row.id is not None
        assert row.receipt_url is None

    def test_receipt_url_is_stored(self, db_session, owner, monkeypatch):
        async def fake_upload(bucket, path, content, content_type, client=None):
            return f"https://storage.test/public/{bucket}/{path}"

        monkeypatch.setattr(receipts, "upload_receipt", fake_upload)
        row = self._expense(owner)
        asyncio.run(ledger.save_with_receipt(db_session, row, self.pending))
        assert row.receipt_url == "https://storage.test/public/receipts/1/a.pdf"

    def test_failed_upload_writes_nothing(self, db_session, owner, monkeypatch):
        async def failing_upload(*args, **kwargs):
            raise StoreWriteError("Receipt upload failed: 503")

        monkeypatch.setattr(receipts, "upload_receipt", failing_upload)
        with pytest.raises(StoreWriteError):
            asyncio.run(ledger.save_with_receipt(db_session, self._expense(owner), self.pending))
        assert count(db_session, Transaction) == 0

    def test_failed_insert_removes_upload(self, db_session, owner, monkeypatch):
        deleted = []

        async def fake_upload(bucket, path, content, content_type, client=None):
            return "https://storage.test/x"

        async def fake_delete(bucket, path, client=None):
            deleted.append(f"{bucket}/{path}")

        monkeypatch.setattr(receipts, "upload_receipt", fake_upload)
        monkeypatch.setattr(receipts, "delete_receipt", fake_delete)
        with pytest.raises(StoreWriteError) as excinfo:
            asyncio.run(ledger.save_with_receipt(db_session, self._expense(owner, amount=None), self.pending))
        assert not isinstance(excinfo.value, PartialWriteError)
        assert deleted == ["receipts/1/a.pdf"]

    def test_orphaned_upload_is_reported(self, db_session, owner, monkeypatch):
        async def fake_upload(bucket, path, content, content_type, client=None):
            return "https://storage.test/x"

        async def failing_delete(bucket, path, client=None):
            raise StoreWriteError("Receipt delete failed: 500")

        monkeypatch.setattr(receipts, "upload_receipt", fake_upload)
        monkeypatch.setattr(receipts, "delete_receipt", failing_delete)
        with pytest.raises(PartialWriteError) as excinfo:
            asyncio.run(ledger.save_with_receipt(db_session, self._expense(owner, amount=None), self.pending))
        assert excinfo.value.orphaned == "receipts/1/a.pdf"
        assert excinfo.value.code == "PARTIAL_WRITE"
