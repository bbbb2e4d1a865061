from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import pytest

import spend_analysis.categorize as categorize_mod
from spend_analysis.categorization import parse_classifier_results
from spend_analysis.categorize import OpenAIClassifier, categorize_transactions, recategorize
from spend_analysis.config import Settings
from spend_analysis.models import Category, RawTransaction
from spend_analysis.prompting import build_response_format
from tests.helpers.classifier_stub import FailingClassifier, KeywordClassifier, ScriptedClassifier
from tests.helpers.openai_stub import OpenAIStub, StubResponse, stub_factory


def _raw(n: int, description: str = "Coffee #{i}") -> list[RawTransaction]:
    return [
        RawTransaction(
            date="2024-01-01", description=description.format(i=i), amount=Decimal("-3.50")
        )
        for i in range(n)
    ]


# ---- Gateway ------------------------------------------------------------------


def test_always_failing_collaborator_falls_back_for_every_item() -> None:
    failing = FailingClassifier()
    outcome = categorize_transactions(_raw(450), classifier=failing, batch_size=200)

    assert failing.calls == 3
    assert len(outcome.transactions) == 450
    assert all(t.category is Category.OTHER for t in outcome.transactions)
    assert all(t.confidence == 0.0 for t in outcome.transactions)
    assert outcome.degraded
    assert outcome.failed_batches == 3
    assert len(outcome.warnings) == 1


def test_ids_order_and_batches_preserved() -> None:
    clf = KeywordClassifier()
    raws = _raw(5, "Whole Foods {i}") + _raw(3, "Uber trip {i}")
    outcome = categorize_transactions(raws, classifier=clf, batch_size=3, concurrency=2)

    assert [t.id for t in outcome.transactions] == [f"tx-{i}" for i in range(8)]
    assert [t.description for t in outcome.transactions] == [r.description for r in raws]
    assert [t.category for t in outcome.transactions] == [Category.GROCERIES] * 5 + [
        Category.TRANSPORT
    ] * 3
    assert sorted(len(b) for b in clf.batches) == [2, 3, 3]
    # Request indices are batch-relative.
    assert all([item["index"] for item in b] == list(range(len(b))) for b in clf.batches)
    assert outcome.warnings == []
    assert not outcome.degraded


def test_concurrency_is_bounded() -> None:
    clf = KeywordClassifier(sleep_per_call=0.05)
    categorize_transactions(_raw(10), classifier=clf, batch_size=1, concurrency=3)
    assert 1 <= clf.max_inflight <= 3


def test_unordered_partial_and_malformed_entries() -> None:
    def respond(items: Any) -> Any:
        return {
            "results": [
                {"index": 2, "category": "Dining", "confidence": 1.7},
                {"index": 0, "category": "Made Up", "confidence": 0.8},
                {"index": 0, "category": "Housing", "confidence": 0.9},
                {"index": "1", "category": "Dining", "confidence": 0.5},
                {"index": 9, "category": "Dining", "confidence": 0.5},
                {"index": 3, "category": "Health", "confidence": "high"},
                "not an object",
            ]
        }

    outcome = categorize_transactions(_raw(5), classifier=ScriptedClassifier(respond))
    got = [(t.category, t.confidence) for t in outcome.transactions]
    assert got == [
        (Category.OTHER, 0.8),
        (Category.OTHER, 0.0),
        (Category.DINING, 1.0),
        (Category.HEALTH, 0.0),
        (Category.OTHER, 0.0),
    ]
    assert outcome.warnings == []


def test_unusable_body_degrades_only_its_batch() -> None:
    def respond(items: Any) -> Any:
        if items[0]["description"].startswith("bad"):
            return {"unexpected": True}
        return [{"index": i["index"], "category": "Dining", "confidence": 0.7} for i in items]

    raws = _raw(2, "good {i}") + _raw(2, "bad {i}")
    outcome = categorize_transactions(raws, classifier=ScriptedClassifier(respond), batch_size=2)

    assert [t.category for t in outcome.transactions] == [
        Category.DINING,
        Category.DINING,
        Category.OTHER,
        Category.OTHER,
    ]
    assert outcome.failed_batches == 1
    assert "1 of 2 batches" in outcome.warnings[0]


def test_descriptions_are_capped_in_requests() -> None:
    clf = KeywordClassifier()
    categorize_transactions(
        _raw(1, "x" * 900), classifier=clf, settings=Settings(max_description_chars=500)
    )
    assert len(clf.batches[0][0]["description"]) == 500
    assert clf.batches[0][0]["amount"] == -3.5


def test_empty_input_makes_no_calls() -> None:
    failing = FailingClassifier()
    outcome = categorize_transactions([], classifier=failing)
    assert outcome.transactions == []
    assert failing.calls == 0


def test_recategorize_skips_overridden_records() -> None:
    first = categorize_transactions(_raw(3, "Mystery {i}"), classifier=KeywordClassifier())
    pinned = first.transactions[1].with_override(Category.HEALTH)
    current = [first.transactions[0], pinned, first.transactions[2]]

    clf = KeywordClassifier(rules=[("mystery", "Shopping")])
    again = recategorize(current, classifier=clf)

    assert [t.id for t in again.transactions] == ["tx-0", "tx-1", "tx-2"]
    assert [t.category for t in again.transactions] == [
        Category.SHOPPING,
        Category.HEALTH,
        Category.SHOPPING,
    ]
    assert again.transactions[1] is pinned
    assert sum(len(b) for b in clf.batches) == 2


def test_parse_classifier_results_rejects_non_list_body() -> None:
    with pytest.raises(ValueError):
        parse_classifier_results("nope", num_items=1)


# ---- OpenAI-backed classifier --------------------------------------------------


def test_openai_classifier_sends_strict_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    stub = OpenAIStub(lambda item: ("Groceries", 0.95), calls_out=calls)
    monkeypatch.setattr(categorize_mod, "OpenAI", stub_factory(stub))

    outcome = categorize_transactions(
        _raw(3, "Whole Foods {i}"), classifier=OpenAIClassifier(model="test-model")
    )

    assert [t.category for t in outcome.transactions] == [Category.GROCERIES] * 3
    assert len(calls) == 1
    assert calls[0]["model"] == "test-model"
    assert calls[0]["text"]["format"] == build_response_format()
    assert calls[0]["text"]["format"]["strict"] is True


def test_openai_classifier_retries_rate_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    class _RateLimited(Exception):
        status_code = 429

    attempts: list[int] = []

    class _Responses:
        def create(self, **kwargs: Any) -> StubResponse:
            attempts.append(1)
            if len(attempts) == 1:
                raise _RateLimited("slow down")
            entry = {"index": 0, "category": "Dining", "confidence": 0.6}
            return StubResponse(json.dumps({"results": [entry]}))

    class _Client:
        def __init__(self, *a: Any, **kw: Any) -> None:
            self.responses = _Responses()

    monkeypatch.setattr(categorize_mod, "OpenAI", _Client)
    monkeypatch.setattr(categorize_mod, "_sleep_backoff", lambda attempt_no: None)

    outcome = categorize_transactions(_raw(1), classifier=OpenAIClassifier())
    assert len(attempts) == 2
    assert outcome.transactions[0].category is Category.DINING


def test_openai_classifier_terminal_error_becomes_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    class _BadRequest(Exception):
        status_code = 400

    class _Responses:
        def __init__(self) -> None:
            self.count = 0

        def create(self, **kwargs: Any) -> Any:
            self.count += 1
            raise _BadRequest("bad request")

    responses = _Responses()

    class _Client:
        def __init__(self, *a: Any, **kw: Any) -> None:
            self.responses = responses

    monkeypatch.setattr(categorize_mod, "OpenAI", _Client)
    classifier = OpenAIClassifier()

    with pytest.raises(RuntimeError):
        classifier.classify([{"index": 0, "description": "x", "amount": -1.0}])
    assert responses.count == 1

    outcome = categorize_transactions(_raw(2), classifier=classifier)
    assert [t.category for t in outcome.transactions] == [Category.OTHER, Category.OTHER]
    assert outcome.warnings
