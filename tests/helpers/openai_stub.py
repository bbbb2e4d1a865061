"""Test helpers to stub the OpenAI Responses client used by ``categorize.py``.

The stub parses the user-content payload to extract the embedded request JSON
array and returns a deterministic ``{"results": [...]}`` body. Tests provide a
``decide`` callable mapping each request item to a ``(category, confidence)``
tuple so the test surface stays small and focused on inputs/outputs.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

BEGIN = "BEGIN_TRANSACTIONS_JSON\n"
END = "\nEND_TRANSACTIONS_JSON"


def extract_items_from_user_content(user_content: str) -> list[dict[str, Any]]:
    b = user_content.find(BEGIN)
    e = user_content.rfind(END)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError("categorize: user content missing embedded transactions JSON block")
    return json.loads(user_content[b + len(BEGIN) : e])


class StubResponse:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by ``OpenAIClassifier``.

    Parameters
    ----------
    decide:
        Receives a request item mapping and returns ``(category, confidence)``.
        The item's ``index`` is echoed into the response entry.
    calls_out:
        Appended with each call's kwargs for assertions about batching or the
        schema.
    """

    def __init__(
        self,
        decide: Callable[[dict[str, Any]], tuple[str, float]],
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._decide = decide
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                items = extract_items_from_user_content(kwargs["input"])
                results = []
                for item in items:
                    category, confidence = self._outer._decide(item)
                    results.append(
                        {"index": item["index"], "category": category, "confidence": confidence}
                    )
                return StubResponse(json.dumps({"results": results}))

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls


def stub_factory(stub: OpenAIStub) -> Callable[..., OpenAIStub]:
    """Return a stand-in for the ``OpenAI`` class that always yields ``stub``."""

    def _make(*_a: Any, **_kw: Any) -> OpenAIStub:
        return stub

    return _make
