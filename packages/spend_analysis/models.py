"""Data models and type aliases for ``spend_analysis``.

Transactions move one way through the pipeline: a :class:`RawTransaction` is
produced by normalization (CSV or PDF) and promoted to a
:class:`CategorizedTransaction` by the categorization gateway. Everything
downstream (breakdowns, timelines, subscriptions, anomalies) is a read-only
view recomputed from the current categorized collection.

Amounts are :class:`~decimal.Decimal` values; negative means money out.
Dates are ISO ``YYYY-MM-DD`` strings, so lexical order equals calendar order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import StrEnum
from typing import TypeAlias

# ---------------------------------------------------------------------------
# Category enumeration
# ---------------------------------------------------------------------------


class Category(StrEnum):
    """Closed, ordered set of spending categories. ``OTHER`` is the catch-all."""

    GROCERIES = "Groceries"
    DINING = "Dining"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    SUBSCRIPTIONS = "Subscriptions"
    HOUSING = "Housing"
    UTILITIES = "Utilities"
    HEALTH = "Health"
    SHOPPING = "Shopping"
    INCOME = "Income"
    TRANSFER = "Transfer"
    OTHER = "Other"

    @classmethod
    def coerce(cls, value: object) -> Category:
        """Return the member named by ``value`` or ``OTHER`` when unknown."""

        if isinstance(value, str):
            try:
                return cls(value.strip())
            except ValueError:
                return cls.OTHER
        return cls.OTHER


@dataclass(frozen=True, slots=True)
class CategoryStyle:
    color: str
    icon: str


CATEGORY_STYLES: dict[Category, CategoryStyle] = {
    Category.GROCERIES: CategoryStyle("#22c55e", "\U0001f6d2"),
    Category.DINING: CategoryStyle("#f97316", "\U0001f37d\ufe0f"),
    Category.TRANSPORT: CategoryStyle("#3b82f6", "\U0001f697"),
    Category.ENTERTAINMENT: CategoryStyle("#a855f7", "\U0001f3ac"),
    Category.SUBSCRIPTIONS: CategoryStyle("#6366f1", "\U0001f504"),
    Category.HOUSING: CategoryStyle("#64748b", "\U0001f3e0"),
    Category.UTILITIES: CategoryStyle("#eab308", "\U0001f4a1"),
    Category.HEALTH: CategoryStyle("#ef4444", "\U0001f3e5"),
    Category.SHOPPING: CategoryStyle("#ec4899", "\U0001f6cd\ufe0f"),
    Category.INCOME: CategoryStyle("#10b981", "\U0001f4b0"),
    Category.TRANSFER: CategoryStyle("#06b6d4", "\U0001f501"),
    Category.OTHER: CategoryStyle("#94a3b8", "\U0001f4cb"),
}

# Money moving in or between own accounts; not counted as spending.
NON_SPENDING_CATEGORIES: frozenset[Category] = frozenset({Category.INCOME, Category.TRANSFER})

_missing_styles = [c for c in Category if c not in CATEGORY_STYLES]
if _missing_styles:  # pragma: no cover - import-time guard
    raise RuntimeError(f"CATEGORY_STYLES is missing entries for: {_missing_styles}")


def is_spending(category: Category) -> bool:
    return category not in NON_SPENDING_CATEGORIES


# ---------------------------------------------------------------------------
# Tabular input
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TabularSource:
    """Header list plus string rows, as delivered by a CSV tokenizer or the segmenter."""

    headers: list[str]
    rows: list[list[str]]


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Header names to read each transaction field from.

    All three required columns must exist in the table headers; otherwise
    normalization yields no transactions.
    """

    date_column: str
    description_column: str
    amount_column: str
    category_column: str | None = None


# Fixed mapping for tables synthesized from PDF statements.
PDF_MAPPING = ColumnMapping(
    date_column="Date",
    description_column="Description",
    amount_column="Amount",
)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawTransaction:
    """An unclassified transaction.

    Attributes
    ----------
    date:
        ISO ``YYYY-MM-DD`` calendar date.
    description:
        Non-empty, trimmed text.
    amount:
        Signed amount; negative for expenses, positive for income/credits.
    raw_category:
        Optional label supplied by the source file.
    """

    date: str
    description: str
    amount: Decimal
    raw_category: str | None = None


@dataclass(frozen=True, slots=True)
class CategorizedTransaction:
    """A raw transaction plus its assigned category.

    ``id`` is assigned once at categorization time and stays stable for the
    session. ``is_overridden`` becomes ``True`` when a user reassigns the
    category; re-categorization leaves such records alone.
    """

    id: str
    date: str
    description: str
    amount: Decimal
    category: Category
    confidence: float
    is_overridden: bool = False
    raw_category: str | None = None

    @classmethod
    def from_raw(
        cls, raw: RawTransaction, *, id: str, category: Category, confidence: float
    ) -> CategorizedTransaction:
        return cls(
            id=id,
            date=raw.date,
            description=raw.description,
            amount=raw.amount,
            category=category,
            confidence=confidence,
            raw_category=raw.raw_category,
        )

    def to_raw(self) -> RawTransaction:
        return RawTransaction(
            date=self.date,
            description=self.description,
            amount=self.amount,
            raw_category=self.raw_category,
        )

    def with_override(self, category: Category) -> CategorizedTransaction:
        return replace(self, category=category, is_overridden=True)


Transactions: TypeAlias = Sequence[CategorizedTransaction]
"""The categorized collection every analytics/detector function consumes."""


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class Frequency(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True, slots=True)
class Subscription:
    id: str
    merchant: str
    amount: Decimal
    frequency: Frequency
    confidence: float
    last_charge: str
    next_expected_charge: str
    total_spent: Decimal
    occurrences: int
    transaction_ids: tuple[str, ...]


class AnomalyType(StrEnum):
    UNUSUALLY_LARGE = "unusually_large"
    NEW_MERCHANT = "new_merchant"
    CATEGORY_SPIKE = "category_spike"
    DUPLICATE = "duplicate"
    UNUSUAL_TIMING = "unusual_timing"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[Severity, int] = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


@dataclass(frozen=True, slots=True)
class Anomaly:
    id: str
    transaction_id: str
    type: AnomalyType
    severity: Severity
    description: str
    amount: Decimal
    merchant: str
    date: str


@dataclass(frozen=True, slots=True)
class CategoryBreakdown:
    category: Category
    total: Decimal
    count: int
    percentage: float
    color: str


@dataclass(frozen=True, slots=True)
class TimelinePeriod:
    period: str  # YYYY-MM
    total: Decimal
    by_category: dict[Category, Decimal]


@dataclass(frozen=True, slots=True)
class MerchantSummary:
    merchant: str
    total: Decimal
    count: int


@dataclass(frozen=True, slots=True)
class DateRange:
    start: str | None
    end: str | None


@dataclass(frozen=True, slots=True)
class SummaryStats:
    total_spent: Decimal
    total_income: Decimal
    net: Decimal
    transaction_count: int
    top_category: Category
    date_range: DateRange = field(default_factory=lambda: DateRange(None, None))


__all__ = [
    "Anomaly",
    "AnomalyType",
    "CATEGORY_STYLES",
    "Category",
    "CategorizedTransaction",
    "CategoryBreakdown",
    "CategoryStyle",
    "ColumnMapping",
    "DateRange",
    "Frequency",
    "MerchantSummary",
    "NON_SPENDING_CATEGORIES",
    "PDF_MAPPING",
    "RawTransaction",
    "Severity",
    "Subscription",
    "SummaryStats",
    "TabularSource",
    "TimelinePeriod",
    "Transactions",
    "is_spending",
]
