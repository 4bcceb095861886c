from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from bookledger.core.exceptions import ValidationError
from bookledger.services.inventory import quantize_money, to_decimal
from bookledger.services.summary import Summary


def money(value: Any) -> float:
    return float(quantize_money(to_decimal(value)))


def percent(value: Any) -> float:
    return float(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def today() -> date:
    return datetime.now(timezone.utc).date()


def resolve_range(from_date: date | None, to_date: date | None) -> tuple[date, date]:
    """Defaults to January 1st of the current year through today."""
    end_date = to_date or today()
    start_date = from_date or date(end_date.year, 1, 1)
    if start_date > end_date:
        raise ValidationError("Start date must be on or before end date.")
    return start_date, end_date


def transaction_to_dict(row) -> dict:
    return {
        "id": row.id,
        "date": row.date.isoformat(),
        "type": row.type,
        "amount": money(row.amount),
        "description": row.description,
        "category": row.category,
        "vendor": row.vendor,
        "receipt_url": row.receipt_url,
        "income_source": row.income_source,
        "notes": row.notes,
        "inventory_sale_id": row.inventory_sale_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def donation_to_dict(row) -> dict:
    return {
        "id": row.id,
        "date": row.date.isoformat(),
        "amount": money(row.amount),
        "charity": row.charity,
        "donation_type": row.donation_type,
        "method": row.method,
        "notes": row.notes,
        "receipt_url": row.receipt_url,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def summary_to_dict(summary: Summary, target_rate: Any) -> dict:
    return {
        "income_by_source": {source: money(amount) for source, amount in summary.income_by_source.items()},
        "total_income": money(summary.total_income),
        "total_expenses": money(summary.total_expenses),
        "expenses_by_category": {name: money(amount) for name, amount in summary.expenses_by_category.items()},
        "expense_ratio_pct": percent(summary.expense_ratio),
        "donations": {
            "actual": money(summary.donation_actual),
            "target": money(summary.donation_target),
            "target_rate": float(to_decimal(target_rate)),
            "variance": money(summary.donation_variance),
            "status": summary.donation_status,
            "percent_of_income": percent(summary.percent_donated),
        },
        "net_profit_before_donations": money(summary.net_profit_before_donations),
        "net_profit_after_donations": money(summary.net_profit_after_donations),
        "transaction_count": summary.transaction_count,
        "donation_count": summary.donation_count,
    }
