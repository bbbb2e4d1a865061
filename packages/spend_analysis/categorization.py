"""Validation of classifier responses, one entry at a time.

A classifier response is a list of ``{index, category, confidence}`` entries
(optionally wrapped as ``{"results": [...]}``). It may be incomplete,
unordered, or partly malformed. Unlike a whole-batch failure, a bad entry only
affects itself:

- ``index`` that is not an integer or is out of range: entry discarded.
- repeated ``index``: the first entry wins.
- ``category`` outside :class:`Category`: coerced to ``Other``.
- ``confidence`` missing or not a finite number: ``0``; otherwise clamped
  to ``[0, 1]``.

Only a response whose top-level shape is unusable raises ``ValueError``; the
gateway treats that like any other batch failure.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .logging_setup import get_logger
from .models import Category

_logger = get_logger("spend_analysis.categorization")


@dataclass(frozen=True, slots=True)
class CategoryDecision:
    category: Category
    confidence: float


FALLBACK_DECISION = CategoryDecision(category=Category.OTHER, confidence=0.0)


class ClassifierEntry(BaseModel):
    """Typed view of a single classifier result entry."""

    model_config = ConfigDict(extra="ignore")

    index: int
    category: Category = Category.OTHER
    confidence: float = 0.0

    @field_validator("index", mode="before")
    @classmethod
    def _integral_index(cls, v: Any) -> int:
        if isinstance(v, bool):
            raise ValueError("index must be an integer")
        if isinstance(v, int):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        raise ValueError("index must be an integer")

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v: Any) -> Category:
        return Category.coerce(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamped_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, int | float):
            return 0.0
        fv = float(v)
        if not math.isfinite(fv):
            return 0.0
        return min(1.0, max(0.0, fv))


def _entries_from_body(body: Any) -> list[Any]:
    if isinstance(body, Mapping):
        body = body.get("results")
    if not isinstance(body, list):
        raise ValueError("Invalid classifier response: expected a list of results")
    return body


def parse_classifier_results(body: Any, *, num_items: int) -> dict[int, CategoryDecision]:
    """Return decisions keyed by request index for every usable entry in ``body``.

    Indices absent from the result have no usable entry; callers fill them
    with :data:`FALLBACK_DECISION`.
    """

    entries = _entries_from_body(body)
    out: dict[int, CategoryDecision] = {}
    discarded = 0
    for raw in entries:
        try:
            entry = ClassifierEntry.model_validate(raw)
        except ValidationError:
            discarded += 1
            continue
        if not (0 <= entry.index < num_items) or entry.index in out:
            discarded += 1
            continue
        out[entry.index] = CategoryDecision(category=entry.category, confidence=entry.confidence)

    if discarded or len(out) < num_items:
        _logger.info(
            "categorize:partial_response items=%d usable=%d discarded=%d",
            num_items,
            len(out),
            discarded,
        )
    return out


def align_decisions(decisions: Mapping[int, CategoryDecision], *, num_items: int) -> list[CategoryDecision]:
    """Expand index-keyed decisions to a dense list, filling gaps with the fallback."""

    return [decisions.get(i, FALLBACK_DECISION) for i in range(num_items)]


__all__ = [
    "CategoryDecision",
    "ClassifierEntry",
    "FALLBACK_DECISION",
    "align_decisions",
    "parse_classifier_results",
]
