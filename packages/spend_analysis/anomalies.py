"""Spending anomaly detection.

Five independent detectors each return candidate anomalies; :func:`detect_anomalies`
merges them so that every transaction is reported at most once, keeping the
most severe finding.

Detectors
---------
- ``unusually_large``: more than 2x the category's mean absolute amount
  (categories with at least 3 transactions). Over 5x is high, else medium.
- ``new_merchant``: a merchant seen exactly once with an absolute amount
  over $50. Over $200 is medium, else low.
- ``category_spike``: a month whose category total exceeds 2x that
  category's monthly mean (at least 2 months of data). The month's largest
  transaction is flagged; over 3x is high, else medium.
- ``duplicate``: same merchant and same signed amount within 3 days. The
  later transaction is flagged as medium. This detector looks at every
  transaction, Income and Transfer included.
- ``unusual_timing``: a weekend transaction over 3x the weekend mean (at
  least 3 weekend transactions). Always low.

All other detectors skip Income and Transfer.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from decimal import Decimal

from .analytics import merchant_key
from .formatting import format_currency
from .logging_setup import get_logger
from .models import (
    Anomaly,
    AnomalyType,
    Category,
    CategorizedTransaction,
    Severity,
    Transactions,
    is_spending,
)
from .parsing import days_between

_logger = get_logger("spend_analysis.anomalies")

LARGE_RATIO: Decimal = Decimal(2)
LARGE_HIGH_RATIO: Decimal = Decimal(5)
LARGE_MIN_COUNT: int = 3
NEW_MERCHANT_MIN: Decimal = Decimal(50)
NEW_MERCHANT_MEDIUM: Decimal = Decimal(200)
SPIKE_RATIO: Decimal = Decimal(2)
SPIKE_HIGH_RATIO: Decimal = Decimal(3)
DUPLICATE_WINDOW_DAYS: int = 3
WEEKEND_RATIO: Decimal = Decimal(3)
WEEKEND_MIN_COUNT: int = 3

_ZERO = Decimal(0)


def _mean(values: list[Decimal]) -> Decimal:
    return sum(values, _ZERO) / len(values)


def _candidate(
    tx: CategorizedTransaction, kind: AnomalyType, severity: Severity, description: str
) -> Anomaly:
    # Ids are assigned after merging.
    return Anomaly(
        id="",
        transaction_id=tx.id,
        type=kind,
        severity=severity,
        description=description,
        amount=tx.amount,
        merchant=tx.description,
        date=tx.date,
    )


def _spending(transactions: Transactions) -> list[CategorizedTransaction]:
    return [tx for tx in transactions if is_spending(tx.category)]


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def detect_unusually_large(transactions: Transactions) -> list[Anomaly]:
    by_category: dict[Category, list[CategorizedTransaction]] = defaultdict(list)
    for tx in _spending(transactions):
        by_category[tx.category].append(tx)

    found: list[Anomaly] = []
    for category, members in by_category.items():
        if len(members) < LARGE_MIN_COUNT:
            continue
        mean = _mean([abs(tx.amount) for tx in members])
        if mean == 0:
            continue
        for tx in members:
            ratio = abs(tx.amount) / mean
            if ratio <= LARGE_RATIO:
                continue
            severity = Severity.HIGH if ratio > LARGE_HIGH_RATIO else Severity.MEDIUM
            found.append(
                _candidate(
                    tx,
                    AnomalyType.UNUSUALLY_LARGE,
                    severity,
                    f"{format_currency(abs(tx.amount))} is {ratio:.1f}x the average "
                    f"{category} spend of {format_currency(mean)}",
                )
            )
    return found


def detect_new_merchants(transactions: Transactions) -> list[Anomaly]:
    # History is counted over every transaction; only spending is flagged.
    by_merchant: dict[str, list[CategorizedTransaction]] = defaultdict(list)
    for tx in transactions:
        by_merchant[merchant_key(tx.description)].append(tx)

    found: list[Anomaly] = []
    for members in by_merchant.values():
        if len(members) != 1:
            continue
        tx = members[0]
        amount = abs(tx.amount)
        if amount <= NEW_MERCHANT_MIN or not is_spending(tx.category):
            continue
        severity = Severity.MEDIUM if amount > NEW_MERCHANT_MEDIUM else Severity.LOW
        found.append(
            _candidate(
                tx,
                AnomalyType.NEW_MERCHANT,
                severity,
                f"One-time charge of {format_currency(amount)} from a merchant "
                "with no other history",
            )
        )
    return found


def detect_category_spikes(transactions: Transactions) -> list[Anomaly]:
    by_category: dict[Category, dict[str, list[CategorizedTransaction]]] = defaultdict(
        lambda: defaultdict(list)
    )
    for tx in _spending(transactions):
        by_category[tx.category][tx.date[:7]].append(tx)

    found: list[Anomaly] = []
    for category, by_month in by_category.items():
        if len(by_month) < 2:
            continue
        totals = {
            month: sum((abs(tx.amount) for tx in txs), _ZERO) for month, txs in by_month.items()
        }
        mean = _mean(list(totals.values()))
        if mean == 0:
            continue
        for month, total in totals.items():
            ratio = total / mean
            if ratio <= SPIKE_RATIO:
                continue
            biggest = max(by_month[month], key=lambda tx: abs(tx.amount))
            severity = Severity.HIGH if ratio > SPIKE_HIGH_RATIO else Severity.MEDIUM
            found.append(
                _candidate(
                    biggest,
                    AnomalyType.CATEGORY_SPIKE,
                    severity,
                    f"{category} spending in {month} was {ratio:.1f}x the monthly average "
                    f"({format_currency(total)} vs {format_currency(mean)})",
                )
            )
    return found


def detect_duplicates(transactions: Transactions) -> list[Anomaly]:
    ordered = sorted(transactions, key=lambda tx: tx.date)
    seen: set[tuple[str, str]] = set()
    found: list[Anomaly] = []
    for i, first in enumerate(ordered):
        first_key = merchant_key(first.description)
        for second in ordered[i + 1 :]:
            gap = days_between(first.date, second.date)
            if gap > DUPLICATE_WINDOW_DAYS:
                break
            if merchant_key(second.description) != first_key or second.amount != first.amount:
                continue
            pair = (first.id, second.id)
            if pair in seen:
                continue
            seen.add(pair)
            plural = "" if gap == 1 else "s"
            found.append(
                _candidate(
                    second,
                    AnomalyType.DUPLICATE,
                    Severity.MEDIUM,
                    "Possible double charge: same merchant and amount "
                    f"({format_currency(abs(first.amount))}) within {gap} day{plural}",
                )
            )
    return found


def _is_weekend(iso: str) -> bool:
    return date.fromisoformat(iso).weekday() >= 5


def detect_unusual_timing(transactions: Transactions) -> list[Anomaly]:
    weekend = [tx for tx in _spending(transactions) if _is_weekend(tx.date)]
    if len(weekend) < WEEKEND_MIN_COUNT:
        return []
    mean = _mean([abs(tx.amount) for tx in weekend])
    if mean == 0:
        return []

    found: list[Anomaly] = []
    for tx in weekend:
        amount = abs(tx.amount)
        if amount <= mean * WEEKEND_RATIO:
            continue
        found.append(
            _candidate(
                tx,
                AnomalyType.UNUSUAL_TIMING,
                Severity.LOW,
                f"Large weekend charge of {format_currency(amount)}: "
                f"{amount / mean:.1f}x your average weekend transaction",
            )
        )
    return found


DETECTORS: tuple[Callable[[Transactions], list[Anomaly]], ...] = (
    detect_unusually_large,
    detect_new_merchants,
    detect_category_spikes,
    detect_duplicates,
    detect_unusual_timing,
)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_anomalies(candidates: list[Anomaly]) -> list[Anomaly]:
    """Keep one anomaly per transaction, order by severity then size, and number them."""

    best: dict[str, Anomaly] = {}
    for anomaly in candidates:
        current = best.get(anomaly.transaction_id)
        if current is None or anomaly.severity.rank > current.severity.rank:
            best[anomaly.transaction_id] = anomaly

    ordered = sorted(best.values(), key=lambda a: (-a.severity.rank, -abs(a.amount)))
    return [replace(a, id=f"anomaly-{i}") for i, a in enumerate(ordered)]


def detect_anomalies(transactions: Transactions) -> list[Anomaly]:
    if not transactions:
        return []
    candidates: list[Anomaly] = []
    for detector in DETECTORS:
        candidates.extend(detector(transactions))
    merged = merge_anomalies(candidates)
    _logger.debug(
        "anomalies:done transactions=%d candidates=%d reported=%d",
        len(transactions),
        len(candidates),
        len(merged),
    )
    return merged


__all__ = [
    "DETECTORS",
    "detect_anomalies",
    "detect_category_spikes",
    "detect_duplicates",
    "detect_new_merchants",
    "detect_unusual_timing",
    "detect_unusually_large",
    "merge_anomalies",
]
