from __future__ import annotations

import csv
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from io import StringIO
from typing import Any

from bookledger.services.inventory import margin_percent, quantize_money, to_decimal
from bookledger.services.summary import Summary


EXPENSE_COLUMNS = ["date", "description", "vendor", "amount", "category", "receipt_url"]
INCOME_COLUMNS = ["date", "source", "amount", "notes"]
DONATION_COLUMNS = ["date", "charity", "amount", "donation_type", "method", "receipt_url"]
SUMMARY_COLUMNS = [
    "total_income",
    "total_expenses",
    "total_donations",
    "net_profit_before_donations",
    "net_profit_after_donations",
]
INVENTORY_SALE_COLUMNS = [
    "date",
    "item",
    "quantity",
    "sale_price",
    "revenue",
    "cogs",
    "profit",
    "margin_percent",
    "notes",
]

EXPORT_TYPES = ("expenses", "income", "donations", "summary")


def format_money(value: Any) -> str:
    return f"{quantize_money(to_decimal(value)):.2f}"


def format_date(value: date | datetime | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).split("T")[0]


def render_csv(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    content = output.getvalue()
    output.close()
    return content


def expenses_csv(transactions: Iterable[Any]) -> str:
    return render_csv(
        EXPENSE_COLUMNS,
        (
            [
                format_date(row.date),
                row.description or "",
                row.vendor or "",
                format_money(row.amount),
                row.category or "",
                row.receipt_url or "",
            ]
            for row in transactions
        ),
    )


def income_csv(transactions: Iterable[Any]) -> str:
    return render_csv(
        INCOME_COLUMNS,
        (
            [
                format_date(row.date),
                row.income_source or "Income",
                format_money(row.amount),
                row.description or "",
            ]
            for row in transactions
        ),
    )


def donations_csv(donations: Iterable[Any]) -> str:
    return render_csv(
        DONATION_COLUMNS,
        (
            [
                format_date(row.date),
                row.charity,
                format_money(row.amount),
                row.donation_type,
                row.method or "",
                row.receipt_url or "",
            ]
            for row in donations
        ),
    )


def summary_csv(period_column: str, period_label: str, summary: Summary) -> str:
    """One-row totals export. ``period_column`` is ``year`` for yearly files and ``period`` for ad hoc ranges."""
    return render_csv(
        [period_column, *SUMMARY_COLUMNS],
        [
            [
                period_label,
                format_money(summary.total_income),
                format_money(summary.total_expenses),
                format_money(summary.donation_actual),
                format_money(summary.net_profit_before_donations),
                format_money(summary.net_profit_after_donations),
            ]
        ],
    )


def inventory_sales_csv(sales: Iterable[Any]) -> str:
    rows = []
    for sale in sales:
        revenue = to_decimal(sale.revenue)
        margin = margin_percent(to_decimal(sale.profit), revenue)
        rows.append(
            [
                format_date(sale.sale_date),
                sale.purchase.item_name if sale.purchase else "",
                sale.quantity_sold,
                format_money(sale.sale_price),
                format_money(sale.revenue),
                format_money(sale.cogs),
                format_money(sale.profit),
                f"{margin.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}",
                sale.notes or "",
            ]
        )
    return render_csv(INVENTORY_SALE_COLUMNS, rows)


def export_filename(kind: str, year: int | None = None, start: date | None = None, end: date | None = None) -> str:
    if year is not None:
        return f"{kind}-{year}.csv"
    if start is None or end is None:
        raise ValueError("export_filename needs a year or a start and end date")
    return f"{kind}-{start.isoformat()}-to-{end.isoformat()}.csv"
