from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from spend_analysis.models import CategorizedTransaction, Category, Frequency
from spend_analysis.subscriptions import (
    amount_consistency,
    detect_frequency,
    detect_subscriptions,
    normalize_merchant,
)


def _series(
    description: str,
    amounts: list[str],
    offsets: list[int],
    *,
    start: date = date(2024, 1, 1),
    id_prefix: str = "tx",
) -> list[CategorizedTransaction]:
    return [
        CategorizedTransaction(
            id=f"{id_prefix}-{i}",
            date=(start + timedelta(days=offset)).isoformat(),
            description=description,
            amount=-Decimal(amount),
            category=Category.SUBSCRIPTIONS,
            confidence=0.9,
        )
        for i, (amount, offset) in enumerate(zip(amounts, offsets, strict=True))
    ]


def test_monthly_subscription_detected() -> None:
    txs = _series("Netflix", ["9.99"] * 6, [0, 30, 60, 90, 120, 150])

    subs = detect_subscriptions(txs)

    assert len(subs) == 1
    sub = subs[0]
    assert sub.id == "sub-0"
    assert sub.merchant == "Netflix"
    assert sub.frequency is Frequency.MONTHLY
    assert sub.confidence > 0.9
    assert sub.occurrences == 6
    assert sub.amount == Decimal("9.99")
    assert sub.total_spent == Decimal("59.94")
    assert sub.last_charge == "2024-05-30"
    assert sub.next_expected_charge == "2024-06-29"
    assert sub.transaction_ids == tuple(f"tx-{i}" for i in range(6))


def test_merchant_suffixes_are_grouped_and_order_by_monthly_cost() -> None:
    monthly = _series("SPOTIFY USA #1234", ["11.99"] * 3, [0, 31, 59])
    weekly = _series("Gym Pass", ["5.00"] * 4, [3, 10, 17, 24], id_prefix="w")
    # Same merchant with a different store number.
    monthly[1] = CategorizedTransaction(
        id=monthly[1].id,
        date=monthly[1].date,
        description="Spotify USA #9876",
        amount=monthly[1].amount,
        category=monthly[1].category,
        confidence=0.9,
    )

    subs = detect_subscriptions(monthly + weekly)

    assert [(s.merchant, s.frequency) for s in subs] == [
        ("Gym Pass", Frequency.WEEKLY),
        ("SPOTIFY USA #1234", Frequency.MONTHLY),
    ]
    # Ids follow detection order, not the final cost ordering.
    assert [s.id for s in subs] == ["sub-1", "sub-0"]


def test_irregular_or_single_charges_are_not_subscriptions() -> None:
    irregular = _series("Hardware Store", ["20.00"] * 4, [0, 5, 45, 135])
    single = _series("One Off", ["99.00"], [0], id_prefix="o")
    assert detect_subscriptions(irregular + single) == []


def test_unstable_amounts_push_confidence_below_threshold() -> None:
    offsets = [0, 30, 60, 120, 180, 210]
    stable = _series("Utility Co", ["40.00"] * 6, offsets)
    unstable = _series("Utility Co", ["10.00", "30.00"] * 3, offsets)

    kept = detect_subscriptions(stable)
    assert len(kept) == 1
    assert kept[0].confidence == 0.76
    assert detect_subscriptions(unstable) == []


def test_scoring_helpers() -> None:
    assert normalize_merchant("  Spotify   USA #1234 ") == "spotify usa"
    assert normalize_merchant("Store-42") == "store"
    assert detect_frequency([]) is None
    assert detect_frequency([7, 7, 8]) == (Frequency.WEEKLY, 1.0)
    assert detect_frequency([364, 370]) == (Frequency.YEARLY, 1.0)
    assert amount_consistency([Decimal("10"), Decimal("10.40")]) == 1.0
    assert amount_consistency([Decimal("10"), Decimal("12")]) == 0.9
    assert amount_consistency([Decimal("0"), Decimal("0")]) == 0.0
