"""Dashboard aggregates over a categorized transaction collection.

All functions are pure: they take the current collection and return fresh
view objects. Amounts are summed as absolute values unless stated otherwise;
Income and Transfer never count as spending.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from .models import (
    CATEGORY_STYLES,
    Category,
    CategoryBreakdown,
    DateRange,
    MerchantSummary,
    SummaryStats,
    TimelinePeriod,
    Transactions,
    is_spending,
)

_ZERO = Decimal("0")


def merchant_key(description: str) -> str:
    return description.strip().lower()


def build_category_breakdown(transactions: Transactions) -> list[CategoryBreakdown]:
    """Per-category spend with share of the total, largest first."""

    totals: dict[Category, Decimal] = defaultdict(lambda: _ZERO)
    counts: dict[Category, int] = defaultdict(int)
    for tx in transactions:
        if not is_spending(tx.category):
            continue
        totals[tx.category] += abs(tx.amount)
        counts[tx.category] += 1

    grand_total = sum(totals.values(), _ZERO)
    rows = [
        CategoryBreakdown(
            category=category,
            total=total,
            count=counts[category],
            percentage=float(total / grand_total * 100) if grand_total > 0 else 0.0,
            color=CATEGORY_STYLES[category].color,
        )
        for category, total in totals.items()
    ]
    rows.sort(key=lambda r: r.total, reverse=True)
    return rows


def build_spending_timeline(transactions: Transactions) -> list[TimelinePeriod]:
    """Monthly totals with a zero-filled per-category split, oldest month first."""

    totals: dict[str, Decimal] = {}
    by_period: dict[str, dict[Category, Decimal]] = {}
    for tx in transactions:
        period = tx.date[:7]
        if period not in by_period:
            totals[period] = _ZERO
            by_period[period] = {c: _ZERO for c in Category}
        amount = abs(tx.amount)
        totals[period] += amount
        by_period[period][tx.category] += amount

    return [
        TimelinePeriod(period=period, total=totals[period], by_category=by_period[period])
        for period in sorted(by_period)
    ]


def build_top_merchants(transactions: Transactions, limit: int = 10) -> list[MerchantSummary]:
    """Merchants ranked by absolute spend; the first-seen casing is displayed."""

    display: dict[str, str] = {}
    totals: dict[str, Decimal] = defaultdict(lambda: _ZERO)
    counts: dict[str, int] = defaultdict(int)
    for tx in transactions:
        if not is_spending(tx.category):
            continue
        key = merchant_key(tx.description)
        display.setdefault(key, tx.description.strip())
        totals[key] += abs(tx.amount)
        counts[key] += 1

    ranked = sorted(totals, key=lambda k: totals[k], reverse=True)
    return [
        MerchantSummary(merchant=display[k], total=totals[k], count=counts[k])
        for k in ranked[: max(0, limit)]
    ]


def get_summary_stats(transactions: Transactions) -> SummaryStats:
    spent = _ZERO
    income = _ZERO
    category_totals: dict[Category, Decimal] = defaultdict(lambda: _ZERO)
    for tx in transactions:
        if tx.amount < 0:
            spent += -tx.amount
        elif tx.amount > 0:
            income += tx.amount
        if is_spending(tx.category):
            category_totals[tx.category] += abs(tx.amount)

    top = Category.OTHER
    if category_totals:
        top = max(category_totals, key=lambda c: category_totals[c])

    dates = [tx.date for tx in transactions]
    return SummaryStats(
        total_spent=spent,
        total_income=income,
        net=income - spent,
        transaction_count=len(transactions),
        top_category=top,
        date_range=DateRange(min(dates), max(dates)) if dates else DateRange(None, None),
    )


__all__ = [
    "build_category_breakdown",
    "build_spending_timeline",
    "build_top_merchants",
    "get_summary_stats",
    "merchant_key",
]
