"""Runtime settings read from environment variables.

Every knob has a default so the library works with no environment at all.
Values that are present but unusable (non-numeric, non-positive) fall back to
the default rather than failing, mirroring how the CLI treats worker counts.

Variables
---------
- ``SPEND_ANALYSIS_MAX_ROWS``: source rows accepted per upload (default 5000).
- ``SPEND_ANALYSIS_BATCH_SIZE``: transactions per classifier request (default 200, capped at 200).
- ``SPEND_ANALYSIS_CONCURRENCY``: classifier requests in flight (default 4, capped at 32).
- ``SPEND_ANALYSIS_MAX_DESCRIPTION_CHARS``: description cap per request item (default 500).
- ``SPEND_ANALYSIS_MODEL``: OpenAI model name for categorization.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_ROWS: int = 5000
DEFAULT_BATCH_SIZE: int = 200
DEFAULT_CONCURRENCY: int = 4
DEFAULT_MAX_DESCRIPTION_CHARS: int = 500
DEFAULT_MODEL: str = "gpt-5-mini"

_MAX_CONCURRENCY: int = 32


def _positive_int(name: str, default: int, *, cap: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    if value <= 0:
        return default
    return min(value, cap) if cap is not None else value


@dataclass(frozen=True, slots=True)
class Settings:
    max_rows: int = DEFAULT_MAX_ROWS
    batch_size: int = DEFAULT_BATCH_SIZE
    concurrency: int = DEFAULT_CONCURRENCY
    max_description_chars: int = DEFAULT_MAX_DESCRIPTION_CHARS
    model: str = DEFAULT_MODEL

    @classmethod
    def from_env(cls) -> Settings:
        model = (os.getenv("SPEND_ANALYSIS_MODEL") or "").strip() or DEFAULT_MODEL
        return cls(
            max_rows=_positive_int("SPEND_ANALYSIS_MAX_ROWS", DEFAULT_MAX_ROWS),
            batch_size=_positive_int(
                "SPEND_ANALYSIS_BATCH_SIZE", DEFAULT_BATCH_SIZE, cap=DEFAULT_BATCH_SIZE
            ),
            concurrency=_positive_int(
                "SPEND_ANALYSIS_CONCURRENCY", DEFAULT_CONCURRENCY, cap=_MAX_CONCURRENCY
            ),
            max_description_chars=_positive_int(
                "SPEND_ANALYSIS_MAX_DESCRIPTION_CHARS", DEFAULT_MAX_DESCRIPTION_CHARS
            ),
            model=model,
        )


__all__ = ["Settings"]
