"""Recurring-charge detection.

Transactions are grouped by a normalized merchant identity (store numbers and
similar trailing IDs removed). A group becomes a :class:`Subscription` when
the gaps between its charges are regular enough to match a weekly, monthly,
or yearly cadence and its amounts are stable enough that the combined
confidence clears :data:`MIN_CONFIDENCE`.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from .formatting import to_cents
from .logging_setup import get_logger
from .models import CategorizedTransaction, Frequency, Subscription, Transactions
from .parsing import days_between

_logger = get_logger("spend_analysis.subscriptions")

TRAILING_ID_RE = re.compile(r"[\s#\-_]+\d+$")

MIN_CONFIDENCE: float = 0.5
MIN_INTERVAL_SCORE: float = 0.5


@dataclass(frozen=True, slots=True)
class FrequencyTarget:
    frequency: Frequency
    days: int
    tolerance: int

    def matches(self, gap: int) -> bool:
        return abs(gap - self.days) <= self.tolerance


# Tried in this order; the first acceptable target wins.
FREQUENCY_TARGETS: tuple[FrequencyTarget, ...] = (
    FrequencyTarget(Frequency.WEEKLY, 7, 1),
    FrequencyTarget(Frequency.MONTHLY, 30, 3),
    FrequencyTarget(Frequency.YEARLY, 365, 15),
)
_TARGET_BY_FREQUENCY = {t.frequency: t for t in FREQUENCY_TARGETS}

_MONTHLY_FACTOR: dict[Frequency, Decimal] = {
    Frequency.WEEKLY: Decimal(52) / Decimal(12),
    Frequency.MONTHLY: Decimal(1),
    Frequency.YEARLY: Decimal(1) / Decimal(12),
}

# (max relative deviation, score), checked in order.
_AMOUNT_SCORE_STEPS: tuple[tuple[Decimal, float], ...] = (
    (Decimal("0.05"), 1.0),
    (Decimal("0.10"), 0.9),
    (Decimal("0.20"), 0.7),
    (Decimal("0.35"), 0.5),
)


def normalize_merchant(description: str) -> str:
    """``"Spotify USA #1234 "`` -> ``"spotify usa"``."""

    key = TRAILING_ID_RE.sub("", description.strip().lower())
    return " ".join(key.split())


def detect_frequency(gaps: Sequence[int]) -> tuple[Frequency, float] | None:
    """Match the median gap to a cadence; return it with its interval score."""

    if not gaps:
        return None
    median = sorted(gaps)[len(gaps) // 2]
    for target in FREQUENCY_TARGETS:
        if not target.matches(median):
            continue
        score = sum(1 for g in gaps if target.matches(g)) / len(gaps)
        if score >= MIN_INTERVAL_SCORE:
            return target.frequency, score
    return None


def amount_consistency(amounts: Sequence[Decimal]) -> float:
    if len(amounts) <= 1:
        return 1.0
    mean = sum(amounts, Decimal(0)) / len(amounts)
    if mean == 0:
        return 0.0
    max_dev = max(abs(a - mean) / abs(mean) for a in amounts)
    for limit, score in _AMOUNT_SCORE_STEPS:
        if max_dev <= limit:
            return score
    return 0.3


def monthly_cost(sub: Subscription) -> Decimal:
    return sub.amount * _MONTHLY_FACTOR[sub.frequency]


def _next_charge(last: str, frequency: Frequency) -> str:
    days = _TARGET_BY_FREQUENCY[frequency].days
    return (date.fromisoformat(last) + timedelta(days=days)).isoformat()


def _score_group(
    sub_id: str, display: str, members: list[CategorizedTransaction]
) -> Subscription | None:
    ordered = sorted(members, key=lambda tx: tx.date)
    gaps = [days_between(a.date, b.date) for a, b in zip(ordered, ordered[1:])]
    match = detect_frequency(gaps)
    if match is None:
        return None
    frequency, interval_score = match

    amounts = [abs(tx.amount) for tx in ordered]
    confidence = round(interval_score * 0.6 + amount_consistency(amounts) * 0.4, 2)
    if confidence <= MIN_CONFIDENCE:
        return None

    total = sum(amounts, Decimal(0))
    last = ordered[-1].date
    return Subscription(
        id=sub_id,
        merchant=display,
        amount=to_cents(total / len(amounts)),
        frequency=frequency,
        confidence=confidence,
        last_charge=last,
        next_expected_charge=_next_charge(last, frequency),
        total_spent=to_cents(total),
        occurrences=len(ordered),
        transaction_ids=tuple(tx.id for tx in ordered),
    )


def detect_subscriptions(transactions: Transactions) -> list[Subscription]:
    """Return likely subscriptions, most expensive per month first.

    Ids are ``sub-<n>`` in detection (first-seen merchant) order and are not
    renumbered by the final sort.
    """

    groups: dict[str, tuple[str, list[CategorizedTransaction]]] = {}
    for tx in transactions:
        key = normalize_merchant(tx.description)
        if key not in groups:
            groups[key] = (tx.description.strip(), [])
        groups[key][1].append(tx)

    found: list[Subscription] = []
    for display, members in groups.values():
        if len(members) < 2:
            continue
        sub = _score_group(f"sub-{len(found)}", display, members)
        if sub is not None:
            found.append(sub)

    found.sort(key=monthly_cost, reverse=True)
    _logger.debug("subscriptions:done groups=%d detected=%d", len(groups), len(found))
    return found


__all__ = [
    "FREQUENCY_TARGETS",
    "FrequencyTarget",
    "amount_consistency",
    "detect_frequency",
    "detect_subscriptions",
    "monthly_cost",
    "normalize_merchant",
]
