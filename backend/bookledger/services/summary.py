from __future__ import annotations

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from bookledger.models.transaction import EXPENSE, INCOME, INCOME_SOURCES
from bookledger.services.inventory import HUNDRED, ZERO, to_decimal


UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class Summary:
    income_by_source: dict[str, Decimal]
    total_income: Decimal
    total_expenses: Decimal
    expenses_by_category: dict[str, Decimal]
    donation_actual: Decimal
    donation_target: Decimal
    donation_variance: Decimal
    percent_donated: Decimal
    expense_ratio: Decimal
    net_profit_before_donations: Decimal
    net_profit_after_donations: Decimal
    transaction_count: int = 0
    donation_count: int = 0

    @property
    def donation_status(self) -> str:
        return "ahead" if self.donation_variance >= 0 else "behind"


def summarize(
    transactions: Iterable[Any],
    donations: Iterable[Any],
    donation_target_rate: Any,
) -> Summary:
    """Reduce already-windowed transactions and donations to the figures shown on a summary.

    Works the same for a month or a year; callers pick the window.
    """
    rate = to_decimal(donation_target_rate)
    income_by_source: dict[str, Decimal] = {source: ZERO for source in INCOME_SOURCES}
    expenses_by_category: dict[str, Decimal] = {}
    total_income = ZERO
    total_expenses = ZERO
    transaction_count = 0

    for row in transactions:
        transaction_count += 1
        amount = to_decimal(row.amount)
        if row.type == INCOME:
            total_income += amount
            source = row.income_source or "Other"
            income_by_source[source] = income_by_source.get(source, ZERO) + amount
        elif row.type == EXPENSE:
            total_expenses += amount
            category = row.category or UNCATEGORIZED
            expenses_by_category[category] = expenses_by_category.get(category, ZERO) + amount

    donation_rows = list(donations)
    donation_actual = sum((to_decimal(d.amount) for d in donation_rows), ZERO)
    donation_target = total_income * rate
    net_before = total_income - total_expenses

    return Summary(
        income_by_source=income_by_source,
        total_income=total_income,
        total_expenses=total_expenses,
        expenses_by_category=expenses_by_category,
        donation_actual=donation_actual,
        donation_target=donation_target,
        donation_variance=donation_actual - donation_target,
        percent_donated=donation_actual / total_income * HUNDRED if total_income else ZERO,
        expense_ratio=total_expenses / total_income * HUNDRED if total_income else ZERO,
        net_profit_before_donations=net_before,
        net_profit_after_donations=net_before - donation_actual,
        transaction_count=transaction_count,
        donation_count=len(donation_rows),
    )


def month_window(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def year_window(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def parse_month(value: str) -> tuple[int, int]:
    """``"2025-03"`` -> ``(2025, 3)``."""
    try:
        year_part, month_part = value.split("-")
        year, month = int(year_part), int(month_part)
    except ValueError as exc:
        raise ValueError(f"Invalid month {value!r}, expected YYYY-MM") from exc
    if not 1 <= month <= 12 or not 1 <= year <= 9999:
        raise ValueError(f"Invalid month {value!r}, expected YYYY-MM")
    return year, month
