from __future__ import annotations

from decimal import Decimal

from spend_analysis.anomalies import (
    detect_anomalies,
    detect_category_spikes,
    detect_unusually_large,
    merge_anomalies,
)
from spend_analysis.models import Anomaly, AnomalyType, CategorizedTransaction, Category, Severity


def _tx(
    i: int, date: str, description: str, amount: str, category: Category = Category.DINING
) -> CategorizedTransaction:
    return CategorizedTransaction(
        id=f"tx-{i}",
        date=date,
        description=description,
        amount=Decimal(amount),
        category=category,
        confidence=0.9,
    )


def _candidate(tx_id: str, severity: Severity, amount: str, kind: AnomalyType) -> Anomaly:
    return Anomaly(
        id="",
        transaction_id=tx_id,
        type=kind,
        severity=severity,
        description=f"{kind} {severity}",
        amount=Decimal(amount),
        merchant="m",
        date="2024-01-01",
    )


def test_unusually_large_outranks_new_merchant_for_same_transaction() -> None:
    txs = [
        _tx(0, "2024-01-01", "Cafe A", "-10.00"),
        _tx(1, "2024-01-02", "Cafe B", "-10.00"),
        _tx(2, "2024-01-03", "Cafe C", "-10.00"),
        _tx(3, "2024-01-04", "Steakhouse", "-100.00"),
    ]

    anomalies = detect_anomalies(txs)

    assert len(anomalies) == 1
    a = anomalies[0]
    assert (a.id, a.transaction_id) == ("anomaly-0", "tx-3")
    assert a.type is AnomalyType.UNUSUALLY_LARGE
    assert a.severity is Severity.MEDIUM
    assert a.description == "$100.00 is 3.1x the average Dining spend of $32.50"
    assert a.amount == Decimal("-100.00")
    assert a.merchant == "Steakhouse"


def test_duplicate_flags_the_later_charge() -> None:
    txs = [
        _tx(0, "2024-01-02", "Coffee Bar", "-4.50"),
        _tx(1, "2024-01-04", "coffee bar ", "-4.50"),
        _tx(2, "2024-01-09", "Coffee Bar", "-4.50"),
    ]

    anomalies = detect_anomalies(txs)

    assert [(a.transaction_id, a.type) for a in anomalies] == [("tx-1", AnomalyType.DUPLICATE)]
    assert anomalies[0].severity is Severity.MEDIUM
    assert anomalies[0].description.endswith("($4.50) within 2 days")


def test_same_day_triple_reports_each_later_charge_once() -> None:
    txs = [_tx(i, "2024-01-03", "Parking", "-2.00", Category.TRANSPORT) for i in range(3)]
    anomalies = detect_anomalies(txs)
    assert sorted(a.transaction_id for a in anomalies) == ["tx-1", "tx-2"]
    assert all(a.type is AnomalyType.DUPLICATE for a in anomalies)


def test_duplicates_consider_income() -> None:
    txs = [
        _tx(0, "2024-01-05", "Payroll", "1000.00", Category.INCOME),
        _tx(1, "2024-01-05", "Payroll", "1000.00", Category.INCOME),
    ]
    anomalies = detect_anomalies(txs)
    assert [(a.transaction_id, a.type) for a in anomalies] == [("tx-1", AnomalyType.DUPLICATE)]


def test_new_merchant_severity_by_amount() -> None:
    txs = [
        _tx(0, "2024-01-02", "Furniture Barn", "-350.00", Category.SHOPPING),
        _tx(1, "2024-01-03", "Bike Shop", "-75.00", Category.TRANSPORT),
        _tx(2, "2024-01-04", "Corner Store", "-50.00", Category.GROCERIES),
        _tx(3, "2024-01-05", "Tax Refund", "900.00", Category.INCOME),
    ]

    by_tx = {a.transaction_id: a for a in detect_anomalies(txs)}

    assert set(by_tx) == {"tx-0", "tx-1"}
    assert by_tx["tx-0"].type is AnomalyType.NEW_MERCHANT
    assert by_tx["tx-0"].severity is Severity.MEDIUM
    assert by_tx["tx-1"].severity is Severity.LOW


def test_category_spike_flags_largest_in_month() -> None:
    txs = [
        _tx(0, "2024-01-02", "Grocer", "-50.00", Category.GROCERIES),
        _tx(1, "2024-01-20", "Grocer", "-50.00", Category.GROCERIES),
        _tx(2, "2024-02-06", "Grocer", "-50.00", Category.GROCERIES),
        _tx(3, "2024-02-22", "Grocer", "-50.00", Category.GROCERIES),
    ] + [
        _tx(4 + k, f"2024-03-{1 + 4 * k:02d}", "Grocer", "-100.00", Category.GROCERIES)
        for k in range(5)
    ]

    anomalies = detect_anomalies(txs)

    assert len(anomalies) == 1
    a = anomalies[0]
    assert a.type is AnomalyType.CATEGORY_SPIKE
    assert a.severity is Severity.MEDIUM
    assert a.transaction_id == "tx-4"
    assert a.description == (
        "Groceries spending in 2024-03 was 2.1x the monthly average ($500.00 vs $233.33)"
    )


def test_unusual_timing_on_weekends() -> None:
    # Saturdays in January 2024.
    txs = [
        _tx(0, "2024-01-06", "Market", "-10.00", Category.DINING),
        _tx(1, "2024-01-13", "Market", "-10.00", Category.GROCERIES),
        _tx(2, "2024-01-20", "Market", "-10.00", Category.TRANSPORT),
        _tx(3, "2024-01-27", "Market", "-200.00", Category.ENTERTAINMENT),
    ]

    anomalies = detect_anomalies(txs)

    assert [(a.transaction_id, a.type, a.severity) for a in anomalies] == [
        ("tx-3", AnomalyType.UNUSUAL_TIMING, Severity.LOW)
    ]
    assert "3.5x your average weekend transaction" in anomalies[0].description


def test_merge_keeps_strictly_higher_severity_and_sorts() -> None:
    candidates = [
        _candidate("tx-a", Severity.LOW, "-500", AnomalyType.NEW_MERCHANT),
        _candidate("tx-b", Severity.HIGH, "-10", AnomalyType.UNUSUALLY_LARGE),
        _candidate("tx-c", Severity.MEDIUM, "-300", AnomalyType.DUPLICATE),
        _candidate("tx-d", Severity.MEDIUM, "-900", AnomalyType.CATEGORY_SPIKE),
        _candidate("tx-a", Severity.MEDIUM, "-500", AnomalyType.DUPLICATE),
        _candidate("tx-b", Severity.HIGH, "-10", AnomalyType.CATEGORY_SPIKE),
    ]

    merged = merge_anomalies(candidates)

    assert [(a.id, a.transaction_id) for a in merged] == [
        ("anomaly-0", "tx-b"),
        ("anomaly-1", "tx-d"),
        ("anomaly-2", "tx-a"),
        ("anomaly-3", "tx-c"),
    ]
    assert merged[0].type is AnomalyType.UNUSUALLY_LARGE
    assert merged[2].type is AnomalyType.DUPLICATE
    assert len({a.transaction_id for a in merged}) == len(merged)


def test_no_transactions_no_anomalies() -> None:
    assert detect_anomalies([]) == []


def test_unusually_large_high_above_five_times_average() -> None:
    # Weekdays in early January 2024, one merchant each.
    days = ["01", "02", "03", "04", "05", "08", "09", "10", "11"]
    txs = [_tx(i, f"2024-01-{d}", f"Cafe {i}", "-10.00") for i, d in enumerate(days)]
    txs.append(_tx(9, "2024-01-12", "Chef's Table", "-200.00"))

    found = detect_unusually_large(txs)

    assert [(a.transaction_id, a.severity) for a in found] == [("tx-9", Severity.HIGH)]
    assert found[0].description == "$200.00 is 6.9x the average Dining spend of $29.00"
    assert detect_anomalies(txs)[0].severity is Severity.HIGH


def test_category_spike_high_above_three_times_monthly_mean() -> None:
    txs = [
        _tx(m, f"2024-{m + 1:02d}-10", "Grocer", "-50.00", Category.GROCERIES) for m in range(5)
    ]
    txs.append(_tx(5, "2024-06-10", "Grocer", "-1000.00", Category.GROCERIES))

    found = detect_category_spikes(txs)

    assert len(found) == 1
    assert (found[0].transaction_id, found[0].severity) == ("tx-5", Severity.HIGH)
    assert found[0].description == (
        "Groceries spending in 2024-06 was 4.8x the monthly average ($1,000.00 vs $208.33)"
    )
