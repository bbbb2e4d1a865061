"""Tabular (CSV-shaped) input to :class:`RawTransaction` normalization.

Two inputs reach this module: CSV text tokenized here with the stdlib
:mod:`csv` module (RFC 4180 quoting, embedded newlines, doubled quotes), and
tables synthesized by :mod:`spend_analysis.segmenter` from PDF statements.
Both share the :class:`TabularSource` shape and go through
:func:`normalize_table` with a :class:`ColumnMapping`.

Rows that do not yield a date, an amount, and a non-empty description are
dropped silently; the caller can see how many via
:attr:`NormalizedTable.dropped_rows`.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import dataclass, field
from io import StringIO

from .errors import EmptyInputError, MalformedCsvError
from .logging_setup import get_logger
from .models import ColumnMapping, RawTransaction, TabularSource
from .parsing import parse_amount, parse_date

_logger = get_logger("spend_analysis.tabular")

# Keyword sets per role, matched as case-insensitive substrings of a header.
DATE_KEYWORDS: tuple[str, ...] = ("date", "posted", "trans date")
DESCRIPTION_KEYWORDS: tuple[str, ...] = (
    "description",
    "merchant",
    "name",
    "memo",
    "payee",
    "narration",
)
AMOUNT_KEYWORDS: tuple[str, ...] = ("amount", "debit", "credit", "total", "sum", "value")
CATEGORY_KEYWORDS: tuple[str, ...] = ("category", "type", "classification")


# ---------------------------------------------------------------------------
# CSV tokenizing
# ---------------------------------------------------------------------------


def read_csv_table(csv_text: str) -> TabularSource:
    """Tokenize CSV text into headers and string rows.

    The first non-blank record is the header row. Blank records are skipped,
    short rows are padded with empty cells, and cells beyond the header width
    are discarded. Bare carriage-return line endings are accepted. Input the
    :mod:`csv` tokenizer rejects raises :class:`MalformedCsvError`.
    """

    text = csv_text.removeprefix("\ufeff")
    try:
        with StringIO(text, newline="") as f:
            records = [r for r in csv.reader(f) if any(cell.strip() for cell in r)]
    except csv.Error as e:
        _logger.warning("read_csv:tokenize_failed error=%s", e)
        raise MalformedCsvError(str(e)) from e
    if not records:
        raise EmptyInputError()

    headers = [h.strip() for h in records[0]]
    if not any(headers):
        raise EmptyInputError()

    width = len(headers)
    rows: list[list[str]] = []
    for record in records[1:]:
        if len(record) < width:
            record = record + [""] * (width - len(record))
        rows.append(record[:width])
    return TabularSource(headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# Column detection
# ---------------------------------------------------------------------------


def _first_match(
    headers: Sequence[str], keywords: Sequence[str], taken: set[int]
) -> int | None:
    for i, header in enumerate(headers):
        if i in taken:
            continue
        h = header.strip().lower()
        if any(k in h for k in keywords):
            return i
    return None


def detect_columns(headers: Sequence[str]) -> ColumnMapping | None:
    """Guess a :class:`ColumnMapping` from header names.

    Roles are resolved in the order date, description, amount, category; each
    takes the first header containing one of its keywords that no earlier
    role has claimed. Returns ``None`` when date, description, or amount
    cannot be resolved.
    """

    taken: set[int] = set()
    resolved: list[int | None] = []
    for keywords in (DATE_KEYWORDS, DESCRIPTION_KEYWORDS, AMOUNT_KEYWORDS, CATEGORY_KEYWORDS):
        idx = _first_match(headers, keywords, taken)
        if idx is not None:
            taken.add(idx)
        resolved.append(idx)

    date_i, desc_i, amount_i, cat_i = resolved
    if date_i is None or desc_i is None or amount_i is None:
        return None
    return ColumnMapping(
        date_column=headers[date_i],
        description_column=headers[desc_i],
        amount_column=headers[amount_i],
        category_column=headers[cat_i] if cat_i is not None else None,
    )


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalizedTable:
    transactions: list[RawTransaction]
    dropped_rows: list[int] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.transactions) + len(self.dropped_rows)


def _cell(row: Sequence[str], idx: int) -> str:
    return row[idx] if idx < len(row) else ""


def normalize_table(table: TabularSource, mapping: ColumnMapping) -> NormalizedTable:
    """Map every row of ``table`` through ``mapping``.

    Returns an empty result (every row dropped) when a required mapping
    column is not among the headers.
    """

    headers = list(table.headers)
    try:
        date_i = headers.index(mapping.date_column)
        desc_i = headers.index(mapping.description_column)
        amount_i = headers.index(mapping.amount_column)
    except ValueError:
        _logger.warning("normalize:unmapped_columns rows=%d", len(table.rows))
        return NormalizedTable(transactions=[], dropped_rows=list(range(len(table.rows))))
    cat_i: int | None = None
    if mapping.category_column is not None and mapping.category_column in headers:
        cat_i = headers.index(mapping.category_column)

    out: list[RawTransaction] = []
    dropped: list[int] = []
    for pos, row in enumerate(table.rows):
        iso = parse_date(_cell(row, date_i))
        amount = parse_amount(_cell(row, amount_i))
        description = _cell(row, desc_i).strip()
        if iso is None or amount is None or not description:
            dropped.append(pos)
            continue
        raw_category: str | None = None
        if cat_i is not None:
            raw_category = _cell(row, cat_i).strip() or None
        out.append(
            RawTransaction(
                date=iso,
                description=description,
                amount=amount,
                raw_category=raw_category,
            )
        )

    if dropped:
        _logger.info("normalize:dropped_rows kept=%d dropped=%d", len(out), len(dropped))
    return NormalizedTable(transactions=out, dropped_rows=dropped)


def apply_mapping(
    rows: Sequence[Sequence[str]], headers: Sequence[str], mapping: ColumnMapping
) -> list[RawTransaction]:
    """Convenience wrapper returning only the normalized transactions."""

    table = TabularSource(headers=list(headers), rows=[list(r) for r in rows])
    return normalize_table(table, mapping).transactions


__all__ = [
    "NormalizedTable",
    "apply_mapping",
    "detect_columns",
    "normalize_table",
    "read_csv_table",
]
