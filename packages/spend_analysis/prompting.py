"""Prompt construction and request serialization for transaction categorization.

This module builds:
- A deterministic JSON serialization of one request batch with a fixed
  field order (``index, description, amount``).
- The system and user prompts for the categorization task.
- The strict ``response_format`` (JSON Schema) object for the OpenAI
  Responses API, with the category enum taken from :class:`Category`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import Category

REQUEST_FIELD_ORDER: tuple[str, ...] = ("index", "description", "amount")

BEGIN_MARKER = "BEGIN_TRANSACTIONS_JSON"
END_MARKER = "END_TRANSACTIONS_JSON"

# One line of guidance per category, in enumeration order.
CATEGORY_GUIDE: dict[Category, str] = {
    Category.GROCERIES: "Supermarkets, grocery stores, farmers markets",
    Category.DINING: "Restaurants, cafes, fast food, food delivery",
    Category.TRANSPORT: "Gas, rideshare, public transit, parking, tolls",
    Category.ENTERTAINMENT: "Movies, concerts, games, streaming, hobbies",
    Category.SUBSCRIPTIONS: "Recurring digital services, memberships, software",
    Category.HOUSING: "Rent, mortgage, property tax, HOA, home insurance",
    Category.UTILITIES: "Electric, gas, water, internet, phone bills",
    Category.HEALTH: "Medical, dental, pharmacy, fitness, insurance premiums",
    Category.SHOPPING: "Retail, clothing, electronics, home goods, online shopping",
    Category.INCOME: "Salary, freelance payments, refunds, interest, dividends",
    Category.TRANSFER: "Bank transfers, credit card payments, investment moves",
    Category.OTHER: "Anything that does not clearly fit another category",
}


def serialize_batch_to_json(items: Sequence[Mapping[str, Any]]) -> str:
    """Serialize request items to a JSON array with a fixed per-object field order."""

    arr: list[dict[str, Any]] = []
    for item in items:
        arr.append({key: item.get(key) for key in REQUEST_FIELD_ORDER})
    return json.dumps(arr, ensure_ascii=False)


def build_system_instructions() -> str:
    return (
        "You are a financial transaction categorizer. Given bank transactions (description "
        "and signed amount), assign each exactly one category from the allowed list. "
        "Never invent categories. Output JSON only that conforms to the specified schema."
    )


def build_user_content(batch_json: str) -> str:
    """Build the user message: category guide, rules, and the delimited batch JSON."""

    lines: list[str] = ["Categories:"]
    for category in Category:
        lines.append(f"- {category.value}: {CATEGORY_GUIDE[category]}")
    lines.extend(
        [
            "",
            "Rules:",
            "- Positive amounts are money coming in and are likely Income or Transfer.",
            "- Negative amounts are expenses.",
            "- Return one result per transaction, echoing its 'index'.",
            "- 'confidence' is a number from 0.0 to 1.0 for how certain you are.",
            "",
            BEGIN_MARKER,
            batch_json,
            END_MARKER,
        ]
    )
    return "\n".join(lines)


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema ``response_format`` for categorization results.

    Shape::

        {"results": [{"index": int, "category": <enum>, "confidence": number}, ...]}
    """

    codes = [c.value for c in Category]
    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "transaction_categories",
        "schema": {
            "type": "object",
            "properties": {
                "results": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "index": {"type": "integer"},
                            "category": {"type": "string", "enum": codes},
                            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                        },
                        "required": ["index", "category", "confidence"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["results"],
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "BEGIN_MARKER",
    "CATEGORY_GUIDE",
    "END_MARKER",
    "REQUEST_FIELD_ORDER",
    "build_response_format",
    "build_system_instructions",
    "build_user_content",
    "serialize_batch_to_json",
]
