from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookledger.api.deps import get_current_user
from bookledger.api.formatting import donation_to_dict, money, summary_to_dict, today, transaction_to_dict
from bookledger.core.config import get_settings
from bookledger.db.session import get_db
from bookledger.models.donation import Donation
from bookledger.models.transaction import Transaction
from bookledger.models.user import User
from bookledger.services.summary import month_window, summarize, year_window


router = APIRouter()


def transactions_between(db: Session, user_id: int, start: date, end: date) -> list[Transaction]:
    return list(
        db.scalars(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .where(Transaction.date >= start)
            .where(Transaction.date <= end)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        ).all()
    )


def donations_between(db: Session, user_id: int, start: date, end: date) -> list[Donation]:
    return list(
        db.scalars(
            select(Donation)
            .where(Donation.user_id == user_id)
            .where(Donation.date >= start)
            .where(Donation.date <= end)
            .order_by(Donation.date.desc(), Donation.id.desc())
        ).all()
    )


@router.get("/monthly")
def monthly_summary(
    year: int | None = Query(default=None, ge=1900, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    target_rate: Decimal | None = Query(default=None, ge=0, le=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    current = today()
    selected_year = year or current.year
    selected_month = month or current.month
    rate = target_rate if target_rate is not None else Decimal(str(get_settings().donation_target_rate))

    start, end = month_window(selected_year, selected_month)
    month_summary = summarize(
        transactions_between(db, current_user.id, start, end),
        donations_between(db, current_user.id, start, end),
        rate,
    )

    year_start, year_end = year_window(selected_year)
    ytd_summary = summarize(
        transactions_between(db, current_user.id, year_start, year_end),
        donations_between(db, current_user.id, year_start, year_end),
        rate,
    )

    return {
        "year": selected_year,
        "month": selected_month,
        "month_summary": summary_to_dict(month_summary, rate),
        "year_to_date": summary_to_dict(ytd_summary, rate),
    }


@router.get("/dashboard")
def dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    current = today()
    start, end = month_window(current.year, current.month)
    month_summary = summarize(
        transactions_between(db, current_user.id, start, end),
        donations_between(db, current_user.id, start, end),
        get_settings().donation_target_rate,
    )

    latest_transactions = db.scalars(
        select(Transaction)
        .where(Transaction.user_id == current_user.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(3)
    ).all()
    latest_donations = db.scalars(
        select(Donation)
        .where(Donation.user_id == current_user.id)
        .order_by(Donation.created_at.desc(), Donation.id.desc())
        .limit(2)
    ).all()

    activity = [
        {"kind": "transaction", "created_at": row.created_at, "item": transaction_to_dict(row)}
        for row in latest_transactions
    ] + [
        {"kind": "donation", "created_at": row.created_at, "item": donation_to_dict(row)}
        for row in latest_donations
    ]
    activity.sort(key=lambda entry: entry["created_at"], reverse=True)

    return {
        "month": f"{current.year:04d}-{current.month:02d}",
        "total_income": money(month_summary.total_income),
        "total_expenses": money(month_summary.total_expenses),
        "total_donations": money(month_summary.donation_actual),
        "net_profit": money(month_summary.net_profit_after_donations),
        "recent_activity": [
            {"kind": entry["kind"], **entry["item"]} for entry in activity[:4]
        ],
    }
