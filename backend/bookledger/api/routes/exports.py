from datetime import date
from io import StringIO

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from bookledger.api.deps import get_current_user, log_action
from bookledger.api.formatting import resolve_range, today
from bookledger.core.config import get_settings
from bookledger.core.exceptions import NotFoundError, ValidationError
from bookledger.db.session import get_db
from bookledger.models.donation import Donation
from bookledger.models.inventory import InventorySale
from bookledger.models.transaction import EXPENSE, INCOME, Transaction
from bookledger.models.user import User
from bookledger.services import exports
from bookledger.services.summary import summarize, year_window


router = APIRouter()


def resolve_period(year: int | None, from_date: date | None, to_date: date | None) -> tuple[date, date, int | None]:
    """A year wins over a date range; with neither, the current year is exported."""
    if year is not None:
        if from_date or to_date:
            raise ValidationError("Pass either year or from/to, not both.")
        start, end = year_window(year)
        return start, end, year
    if from_date is None and to_date is None:
        current_year = today().year
        start, end = year_window(current_year)
        return start, end, current_year
    start, end = resolve_range(from_date, to_date)
    return start, end, None


def csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        StringIO(content),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def transactions_of_type(db: Session, user_id: int, kind: str, start: date, end: date) -> list[Transaction]:
    return list(
        db.scalars(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .where(Transaction.type == kind)
            .where(Transaction.date >= start)
            .where(Transaction.date <= end)
            .order_by(Transaction.date, Transaction.id)
        ).all()
    )


def donations_in(db: Session, user_id: int, start: date, end: date) -> list[Donation]:
    return list(
        db.scalars(
            select(Donation)
            .where(Donation.user_id == user_id)
            .where(Donation.date >= start)
            .where(Donation.date <= end)
            .order_by(Donation.date, Donation.id)
        ).all()
    )


@router.get("/inventory-sales")
def export_inventory_sales(
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> StreamingResponse:
    start, end = resolve_range(from_date, to_date)
    sales = db.scalars(
        select(InventorySale)
        .options(joinedload(InventorySale.purchase))
        .where(InventorySale.user_id == current_user.id)
        .where(InventorySale.sale_date >= start)
        .where(InventorySale.sale_date <= end)
        .order_by(InventorySale.sale_date, InventorySale.id)
    ).all()
    content = exports.inventory_sales_csv(sales)
    log_action(db, current_user.id, "export", "inventory-sales", f"{start} to {end}, {len(sales)} rows")
    return csv_response(content, exports.export_filename("inventory-sales", start=start, end=end))


@router.get("/{kind}")
def export_ledger(
    kind: str,
    year: int | None = Query(default=None, ge=1900, le=9999),
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> StreamingResponse:
    if kind not in exports.EXPORT_TYPES:
        raise NotFoundError(f"Unknown export {kind!r}.")
    start, end, whole_year = resolve_period(year, from_date, to_date)

    if kind == "expenses":
        content = exports.expenses_csv(transactions_of_type(db, current_user.id, EXPENSE, start, end))
    elif kind == "income":
        content = exports.income_csv(transactions_of_type(db, current_user.id, INCOME, start, end))
    elif kind == "donations":
        content = exports.donations_csv(donations_in(db, current_user.id, start, end))
    else:
        rows = transactions_of_type(db, current_user.id, INCOME, start, end) + transactions_of_type(
            db, current_user.id, EXPENSE, start, end
        )
        summary = summarize(rows, donations_in(db, current_user.id, start, end), get_settings().donation_target_rate)
        if whole_year is not None:
            content = exports.summary_csv("year", str(whole_year), summary)
        else:
            content = exports.summary_csv("period", f"{start.isoformat()} to {end.isoformat()}", summary)

    log_action(db, current_user.id, "export", kind, f"{start} to {end}")
    if whole_year is not None:
        filename = exports.export_filename(kind, year=whole_year)
    else:
        filename = exports.export_filename(kind, start=start, end=end)
    return csv_response(content, filename)
