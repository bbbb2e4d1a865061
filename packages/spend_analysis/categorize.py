"""Categorization gateway: raw transactions in, categorized transactions out.

Public API:
    - :func:`categorize_transactions`
    - :func:`recategorize`
    - :class:`TransactionClassifier` (collaborator protocol)
    - :class:`OpenAIClassifier` (default collaborator)

Transactions are split into fixed-size batches and each batch is sent to the
classifier concurrently. Results come back keyed by the ``index`` each entry
declares, not by position. A batch that fails for any reason (transport
error, non-success status, unusable body) degrades to ``Other`` with
confidence ``0`` for every member and is reported as a warning; it never
affects sibling batches and never raises to the caller.

No side effects occur at import time (no client creation, no environment
reads).
"""

from __future__ import annotations

import json
import random
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Protocol, TypedDict

from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam

from . import prompting
from .categorization import (
    FALLBACK_DECISION,
    CategoryDecision,
    align_decisions,
    parse_classifier_results,
)
from .config import Settings
from .fanout import p_map
from .logging_setup import get_logger
from .models import CategorizedTransaction, RawTransaction

_MAX_ATTEMPTS: int = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_logger = get_logger("spend_analysis.categorize")


# ---- Collaborator interface ---------------------------------------------------


class ClassifierItem(TypedDict):
    index: int
    description: str
    amount: float


class TransactionClassifier(Protocol):
    """Anything that can label one batch of transactions.

    ``classify`` receives the batch with batch-relative ``index`` values and
    returns the raw response: a list of ``{index, category, confidence}``
    mappings, or a mapping holding such a list under ``"results"``. Raising
    is allowed; the gateway turns it into the per-batch fallback.
    """

    def classify(self, items: Sequence[ClassifierItem]) -> Any: ...


# ---- OpenAI-backed classifier -------------------------------------------------


def _extract_response_json(resp: Any) -> Any:
    """Decode the JSON payload from an OpenAI Responses SDK result.

    Prefers ``resp.output_text``; falls back to ``resp.output[0].content[0].text``.
    Raises ``ValueError`` when no text is found or it is not valid JSON.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON per the requested schema") from e


def _create_client() -> OpenAI:
    return OpenAI()


def _is_retryable(exc: BaseException) -> bool:
    """Only HTTP 429 and 5xx are retried; parsing errors are terminal."""

    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


def _sleep_backoff(attempt_no: int) -> None:
    base = _BACKOFF_SCHEDULE_SEC[min(attempt_no - 1, len(_BACKOFF_SCHEDULE_SEC) - 1)]
    jitter = base * _JITTER_PCT
    time.sleep(max(0.0, base + random.uniform(-jitter, jitter)))


class OpenAIClassifier:
    """Classifier backed by the OpenAI Responses API with a strict JSON schema.

    The client is created lazily on first use (reading ``OPENAI_API_KEY`` the
    way the SDK does). 429/5xx responses are retried with jittered backoff;
    other failures raise immediately.
    """

    def __init__(
        self,
        *,
        model: str | None = None,
        client: Any | None = None,
        max_attempts: int = _MAX_ATTEMPTS,
    ) -> None:
        self.model = model or Settings().model
        self._client = client
        self._max_attempts = max(1, max_attempts)
        self._instructions = prompting.build_system_instructions()
        self._text_cfg = ResponseTextConfigParam(format=prompting.build_response_format())

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = _create_client()
        return self._client

    def classify(self, items: Sequence[ClassifierItem]) -> Any:
        user_content = prompting.build_user_content(prompting.serialize_batch_to_json(items))
        client = self._get_client()
        attempt = 1
        while True:
            try:
                resp = client.responses.create(
                    model=self.model,
                    instructions=self._instructions,
                    input=user_content,
                    text=self._text_cfg,
                )
                return _extract_response_json(resp)
            except Exception as e:  # noqa: BLE001
                if attempt >= self._max_attempts or not _is_retryable(e):
                    if isinstance(e, ValueError):
                        raise
                    raise RuntimeError(f"classifier request failed: {e}") from e
                _logger.warning(
                    "categorize:retry count=%d attempt=%d error=%s",
                    len(items),
                    attempt,
                    e.__class__.__name__,
                )
                _sleep_backoff(attempt)
                attempt += 1


# ---- Gateway ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CategorizationOutcome:
    """Categorized transactions plus any non-fatal warnings for the caller."""

    transactions: list[CategorizedTransaction]
    warnings: list[str] = field(default_factory=list)
    failed_batches: int = 0

    @property
    def degraded(self) -> bool:
        return self.failed_batches > 0


class _Batch(NamedTuple):
    batch_index: int
    base: int
    items: list[ClassifierItem]


class _BatchResult(NamedTuple):
    batch_index: int
    base: int
    decisions: list[CategoryDecision]
    error: str | None


def _build_batches(
    transactions: Sequence[RawTransaction], *, batch_size: int, max_description_chars: int
) -> list[_Batch]:
    batches: list[_Batch] = []
    for k, base in enumerate(range(0, len(transactions), batch_size)):
        chunk = transactions[base : base + batch_size]
        items: list[ClassifierItem] = [
            {
                "index": i,
                "description": tx.description[:max_description_chars],
                "amount": float(tx.amount),
            }
            for i, tx in enumerate(chunk)
        ]
        batches.append(_Batch(batch_index=k, base=base, items=items))
    return batches


def _run_batch(batch: _Batch, classifier: TransactionClassifier) -> _BatchResult:
    count = len(batch.items)
    t0 = time.perf_counter()
    try:
        body = classifier.classify(batch.items)
        decisions = align_decisions(
            parse_classifier_results(body, num_items=count), num_items=count
        )
    except Exception as e:  # noqa: BLE001
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _logger.error(
            "categorize:batch_failed batch_index=%d count=%d latency_ms=%.2f error=%s",
            batch.batch_index,
            count,
            dt_ms,
            e.__class__.__name__,
        )
        return _BatchResult(batch.batch_index, batch.base, [FALLBACK_DECISION] * count, str(e))

    dt_ms = (time.perf_counter() - t0) * 1000.0
    _logger.info(
        "categorize:batch_done batch_index=%d count=%d latency_ms=%.2f",
        batch.batch_index,
        count,
        dt_ms,
    )
    return _BatchResult(batch.batch_index, batch.base, decisions, None)


def _classify_all(
    transactions: Sequence[RawTransaction],
    *,
    classifier: TransactionClassifier | None,
    settings: Settings,
    batch_size: int | None,
    concurrency: int | None,
) -> tuple[list[CategoryDecision], int, int]:
    """Return ``(decisions, failed_batches, total_batches)`` aligned to ``transactions``."""

    size = batch_size if batch_size is not None else settings.batch_size
    workers = concurrency if concurrency is not None else settings.concurrency
    if not isinstance(size, int) or size <= 0:
        raise ValueError("batch_size must be a positive integer")

    n_total = len(transactions)
    if n_total == 0:
        return [], 0, 0

    active = classifier if classifier is not None else OpenAIClassifier(model=settings.model)
    batches = _build_batches(
        transactions, batch_size=size, max_description_chars=settings.max_description_chars
    )
    _logger.info(
        "categorize:start transactions=%d batches=%d concurrency=%d",
        n_total,
        len(batches),
        workers,
    )

    results = p_map(batches, lambda b: _run_batch(b, active), concurrency=workers)

    decisions: list[CategoryDecision] = [FALLBACK_DECISION] * n_total
    failed = 0
    for res in results:
        if res.error is not None:
            failed += 1
        decisions[res.base : res.base + len(res.decisions)] = res.decisions
    return decisions, failed, len(batches)


def _failure_warning(failed: int, total: int) -> str:
    if failed == total:
        return 'AI categorization failed. All transactions were marked as "Other".'
    return (
        f"AI categorization failed for {failed} of {total} batches. "
        'Affected transactions were marked as "Other".'
    )


def categorize_transactions(
    transactions: Sequence[RawTransaction],
    *,
    classifier: TransactionClassifier | None = None,
    settings: Settings | None = None,
    batch_size: int | None = None,
    concurrency: int | None = None,
) -> CategorizationOutcome:
    """Assign a category to every transaction, in input order.

    Parameters
    ----------
    transactions:
        Normalized raw transactions.
    classifier:
        Collaborator used for each batch; defaults to :class:`OpenAIClassifier`.
    settings:
        Batch size, concurrency, and description cap defaults; read from the
        environment when omitted.
    batch_size, concurrency:
        Per-call overrides of the corresponding settings.

    Returns
    -------
    CategorizationOutcome
        Exactly one :class:`CategorizedTransaction` per input, with ids
        ``tx-0``, ``tx-1``, ... by position.
    """

    cfg = settings or Settings.from_env()
    decisions, failed, total = _classify_all(
        transactions,
        classifier=classifier,
        settings=cfg,
        batch_size=batch_size,
        concurrency=concurrency,
    )
    out = [
        CategorizedTransaction.from_raw(
            raw, id=f"tx-{i}", category=d.category, confidence=d.confidence
        )
        for i, (raw, d) in enumerate(zip(transactions, decisions, strict=True))
    ]
    warnings = [_failure_warning(failed, total)] if failed else []
    return CategorizationOutcome(transactions=out, warnings=warnings, failed_batches=failed)


def recategorize(
    transactions: Sequence[CategorizedTransaction],
    *,
    classifier: TransactionClassifier | None = None,
    settings: Settings | None = None,
    batch_size: int | None = None,
    concurrency: int | None = None,
) -> CategorizationOutcome:
    """Re-run categorization for records the user has not overridden.

    Ids and order are preserved. Overridden records are returned unchanged.
    """

    cfg = settings or Settings.from_env()
    positions = [i for i, tx in enumerate(transactions) if not tx.is_overridden]
    decisions, failed, total = _classify_all(
        [transactions[i].to_raw() for i in positions],
        classifier=classifier,
        settings=cfg,
        batch_size=batch_size,
        concurrency=concurrency,
    )
    by_position: Mapping[int, CategoryDecision] = dict(zip(positions, decisions, strict=True))

    out: list[CategorizedTransaction] = []
    for i, tx in enumerate(transactions):
        d = by_position.get(i)
        if d is None:
            out.append(tx)
            continue
        out.append(
            CategorizedTransaction.from_raw(
                tx.to_raw(), id=tx.id, category=d.category, confidence=d.confidence
            )
        )
    warnings = [_failure_warning(failed, total)] if failed else []
    return CategorizationOutcome(transactions=out, warnings=warnings, failed_batches=failed)


__all__ = [
    "CategorizationOutcome",
    "ClassifierItem",
    "OpenAIClassifier",
    "TransactionClassifier",
    "categorize_transactions",
    "recategorize",
]
