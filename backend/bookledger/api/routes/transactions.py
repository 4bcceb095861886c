from datetime import date
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookledger.api.deps import get_current_user, log_action, read_receipt
from bookledger.api.formatting import today, transaction_to_dict
from bookledger.core.config import get_settings
from bookledger.core.exceptions import NotFoundError, ValidationError
from bookledger.db.session import get_db
from bookledger.models.donation import DONATION_TYPES
from bookledger.models.transaction import EXPENSE, EXPENSE_CATEGORIES, INCOME, INCOME_SOURCES, Transaction
from bookledger.models.user import User
from bookledger.schemas.transactions import IncomeCreateRequest, TransactionUpdateRequest
from bookledger.services.ledger import PendingReceipt, commit, save_with_receipt
from bookledger.services.receipts import expense_receipt_path
from bookledger.services.summary import month_window, parse_month


router = APIRouter()


def require_category(value: str) -> str:
    chosen = value.strip()
    if not chosen:
        raise ValidationError("Please select or enter a category")
    return chosen


def resolve_expense_category(category: str, custom_category: str) -> str:
    if category.strip() == "Other":
        return require_category(custom_category)
    chosen = require_category(category)
    if chosen not in EXPENSE_CATEGORIES:
        raise ValidationError(f"Unknown expense category {chosen!r}; choose Other to enter your own.")
    return chosen


@router.get("/options")
def transaction_options(_: User = Depends(get_current_user)) -> dict:
    return {
        "expense_categories": list(EXPENSE_CATEGORIES),
        "income_sources": list(INCOME_SOURCES),
        "donation_types": list(DONATION_TYPES),
    }


@router.get("")
def list_transactions(
    month: str | None = None,
    type: Literal["All", "Income", "Expense"] = "All",
    category: str | None = None,
    income_source: str | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    try:
        year, month_number = parse_month(month) if month else (today().year, today().month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    start, end = month_window(year, month_number)

    rows = db.scalars(
        select(Transaction)
        .where(Transaction.user_id == current_user.id)
        .where(Transaction.date >= start)
        .where(Transaction.date <= end)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
    ).all()

    # Filter options come from the whole month, not the filtered subset.
    categories = sorted({row.category for row in rows if row.category})
    income_sources = sorted({row.income_source for row in rows if row.income_source})

    filtered = rows
    if type != "All":
        filtered = [row for row in filtered if row.type == type]
    if category:
        filtered = [row for row in filtered if row.category == category]
    if income_source and type == "Income":
        filtered = [row for row in filtered if row.income_source == income_source]

    return {
        "month": f"{year:04d}-{month_number:02d}",
        "categories": categories,
        "income_sources": income_sources,
        "transactions": [transaction_to_dict(row) for row in filtered],
    }


@router.post("/income", status_code=201)
def create_income(
    payload: IncomeCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    if payload.date > today():
        raise ValidationError("Date cannot be in the future.")

    row = Transaction(
        user_id=current_user.id,
        date=payload.date,
        type=INCOME,
        amount=payload.amount,
        income_source=payload.income_source,
        description=payload.description.strip() or None,
    )
    commit(db, row)
    log_action(db, current_user.id, "create", "income", f"{payload.income_source} {payload.amount}")
    return {"message": "Income added successfully!", "transaction": transaction_to_dict(row)}


@router.post("/expense", status_code=201)
async def create_expense(
    date: date = Form(...),
    amount: Decimal = Form(..., gt=0),
    category: str = Form(...),
    custom_category: str = Form(""),
    description: str = Form("", max_length=200),
    vendor: str = Form("", max_length=160),
    receipt: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    final_category = resolve_expense_category(category, custom_category)
    upload = await read_receipt(receipt)

    row = Transaction(
        user_id=current_user.id,
        date=date,
        type=EXPENSE,
        amount=amount,
        category=final_category,
        description=description.strip() or None,
        vendor=vendor.strip() or None,
    )
    pending = None
    if upload:
        content, content_type = upload
        pending = PendingReceipt(
            bucket=get_settings().expense_receipt_bucket,
            path=expense_receipt_path(current_user.id, receipt.filename, final_category, str(amount)),
            content=content,
            content_type=content_type,
        )
    await save_with_receipt(db, row, pending)
    log_action(db, current_user.id, "create", "expense", f"{final_category} {amount}")
    return {"message": "Expense added successfully!", "transaction": transaction_to_dict(row)}


@router.patch("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    row = db.scalar(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.user_id == current_user.id)
    )
    if not row:
        raise NotFoundError("Transaction not found.")
    if payload.amount is None and payload.category is None:
        raise ValidationError("No changes were sent.")
    if payload.category is not None and row.type != EXPENSE:
        raise ValidationError("Only expenses have a category.")
    if payload.amount is not None and row.inventory_sale_id is not None:
        raise ValidationError("Income posted by an inventory sale follows the sale and cannot be edited.")
    new_category = require_category(payload.category) if payload.category is not None else None

    changes: list[str] = []
    if payload.amount is not None:
        row.amount = payload.amount
        changes.append(f"amount={payload.amount}")
    if new_category is not None:
        row.category = new_category
        changes.append(f"category={new_category}")
    commit(db)
    db.refresh(row)
    log_action(db, current_user.id, "update", "transaction", f"#{row.id} " + ", ".join(changes))
    return {"message": "Transaction updated", "transaction": transaction_to_dict(row)}
