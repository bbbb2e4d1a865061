"""Positioned PDF text to statement transactions.

The input is what a PDF text layer gives us: per page, a flat list of text
fragments, each with an x/y position (PDF coordinate space, so larger ``y`` is
higher on the page). Turning that into transactions happens in two steps.

1. **Line grouping** (:func:`group_lines`). Fragments are bucketed by ``y``
   quantized to :data:`Y_TOLERANCE` so that text printed on the same line
   with sub-pixel jitter lands in one bucket. Each bucket is ordered by ``x``
   and joined with single spaces; buckets are emitted top to bottom.

2. **Line parsing** (:class:`StatementLineParser`). A single forward pass
   over the lines with a two-state machine:

   - ``IDLE``: no transaction in progress. Lines that do not start with a
     date are ignored.
   - ``PENDING``: a dated transaction has been started but is missing its
     description, its amount, or both. Continuation lines fill it in.

   A line that starts with a date always closes whatever is pending and
   starts a new transaction. Amount tokens on a line are resolved by
   :func:`resolve_amount`, which understands the common debit/credit column
   pair layout.

:func:`segment_statement` runs both steps over a whole document and returns
the rows in the same :class:`~spend_analysis.models.TabularSource` shape a CSV
upload produces, to be normalized with
:data:`~spend_analysis.models.PDF_MAPPING`.
"""

from __future__ import annotations

import math
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from .errors import DocumentTooComplexError, NotTextPdfError, NoTransactionsFoundError
from .logging_setup import get_logger
from .models import TabularSource
from .parsing import parse_amount, parse_date

_logger = get_logger("spend_analysis.segmenter")

Y_TOLERANCE: float = 2.0
MAX_LINES: int = 10_000
MIN_TEXT_CHARS: int = 20
STATEMENT_HEADERS: tuple[str, str, str] = ("Date", "Description", "Amount")

_MONTH_NAMES = "jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"

# A date token at the very start of a line, followed by whitespace.
DATE_PREFIX_RE = re.compile(
    r"^(\d{1,2}/\d{1,2}(?:/\d{2,4})?"
    r"|\d{4}-\d{2}-\d{2}"
    rf"|(?:{_MONTH_NAMES})[a-z]*\.?\s+\d{{1,2}}(?:[,\s]+\d{{4}})?)\s",
    re.IGNORECASE,
)

# Money with exactly two decimals: optional minus and dollar sign, or wrapped
# in parentheses for accounting negatives.
AMOUNT_TOKEN_RE = re.compile(r"[-−]?\$?\s?[\d,]+\.\d{2}|\(\$?\s?[\d,]+\.\d{2}\)")

NOISE_RE = re.compile(
    r"opening balance|closing balance|beginning balance|ending balance"
    r"|statement period|account (?:number|summary)|page \d+|continued (?:on|from)"
    r"|subtotal|total (?:debits|credits|charges|deposits|withdrawals|fees)"
    r"|balance forward|previous balance|new balance|interest charged"
    r"|minimum payment|payment due|thank you|customer service",
    re.IGNORECASE,
)

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Step 1: fragments -> lines
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextFragment:
    """One run of text from a PDF text layer.

    ``x`` is the left edge; ``y`` is the baseline measured from the bottom of
    the page (PDF user space), so lines higher on the page have larger ``y``.
    """

    text: str
    x: float
    y: float


def _bucket_key(y: float, tolerance: float) -> float:
    # Round half up so keys do not depend on banker's rounding.
    return math.floor(y / tolerance + 0.5) * tolerance


def group_lines(fragments: Iterable[TextFragment], *, tolerance: float = Y_TOLERANCE) -> list[str]:
    """Reassemble one page's fragments into reading-order lines."""

    buckets: dict[float, list[tuple[float, str]]] = defaultdict(list)
    for frag in fragments:
        if not frag.text:
            continue
        buckets[_bucket_key(frag.y, tolerance)].append((frag.x, frag.text))

    lines: list[str] = []
    for key in sorted(buckets, reverse=True):
        segments = sorted(buckets[key], key=lambda seg: seg[0])
        lines.append(" ".join(text for _, text in segments).strip())
    return lines


# ---------------------------------------------------------------------------
# Amount tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AmountToken:
    text: str
    start: int
    value: Decimal


def find_amount_tokens(text: str) -> list[AmountToken]:
    tokens: list[AmountToken] = []
    for m in AMOUNT_TOKEN_RE.finditer(text):
        value = parse_amount(m.group(0))
        tokens.append(AmountToken(m.group(0), m.start(), value if value is not None else _ZERO))
    return tokens


def resolve_amount(values: Sequence[Decimal]) -> Decimal:
    """Pick the signed transaction amount from the money values on one line.

    - One value: used as-is.
    - Two values: read as a (debit, credit) pair. Nonzero debit with zero
      credit is an expense; zero debit with nonzero credit is a credit.
      Anything else falls back to the last value.
    - Three or more: the last value.
    """

    if not values:
        raise ValueError("resolve_amount requires at least one value")
    if len(values) == 2:
        first, second = values
        if first != 0 and second == 0:
            return -abs(first)
        if first == 0 and second != 0:
            return abs(second)
    return values[-1]


def _collapse(text: str) -> str:
    return " ".join(text.split())


# ---------------------------------------------------------------------------
# Step 2: lines -> rows
# ---------------------------------------------------------------------------


class ParserState(Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class StatementRow:
    date: str
    description: str
    amount: Decimal

    def as_cells(self) -> list[str]:
        return [self.date, self.description, format(self.amount, "f")]


@dataclass(slots=True)
class _PendingTransaction:
    date: str
    description: str = ""
    amount: Decimal | None = None

    @property
    def has_amount(self) -> bool:
        return self.amount is not None and self.amount != 0

    def append(self, text: str) -> None:
        self.description = f"{self.description} {text}".strip() if self.description else text


class StatementLineParser:
    """Forward-only line parser holding at most one pending transaction.

    Feed lines in reading order with :meth:`feed`, then call :meth:`finish`
    to flush and collect the rows. Statement dates printed without a year
    take ``default_year``, or the current year when it is not given.
    """

    def __init__(self, *, default_year: int | None = None) -> None:
        self._default_year = default_year if default_year is not None else date.today().year
        self._pending: _PendingTransaction | None = None
        self._rows: list[StatementRow] = []

    @property
    def state(self) -> ParserState:
        return ParserState.IDLE if self._pending is None else ParserState.PENDING

    @property
    def rows(self) -> list[StatementRow]:
        return list(self._rows)

    def _normalize_date(self, token: str) -> str:
        # Unparseable tokens are kept verbatim; normalization drops the row later.
        return parse_date(token, default_year=self._default_year) or token.strip()

    def _emit(self, date: str, description: str, amount: Decimal) -> None:
        self._rows.append(StatementRow(date=date, description=description, amount=amount))

    def _flush_on_new_date(self) -> None:
        pending = self._pending
        self._pending = None
        if pending is not None and pending.description:
            self._emit(pending.date, pending.description, pending.amount or _ZERO)

    def feed(self, line: str) -> None:
        if not line.strip():
            return
        if NOISE_RE.search(line):
            return

        m = DATE_PREFIX_RE.match(line)
        if m:
            self._start_transaction(m.group(1), line[m.end() :].strip())
        elif self._pending is not None:
            self._continue_transaction(line)

    def _start_transaction(self, date_token: str, rest: str) -> None:
        self._flush_on_new_date()
        date = self._normalize_date(date_token)
        tokens = find_amount_tokens(rest)

        if not tokens:
            self._pending = _PendingTransaction(date=date, description=rest)
            return

        description = _collapse(rest[: tokens[0].start])
        amount = resolve_amount([t.value for t in tokens])
        if not description:
            self._pending = _PendingTransaction(date=date, amount=amount)
            return
        self._emit(date, description, amount)

    def _continue_transaction(self, line: str) -> None:
        pending = self._pending
        assert pending is not None
        tokens = find_amount_tokens(line)

        if not tokens:
            pending.append(line.strip())
            return

        pending.append(line[: tokens[0].start].strip())
        if pending.has_amount:
            amount = pending.amount
        else:
            amount = resolve_amount([t.value for t in tokens])
        if pending.description:
            self._emit(pending.date, pending.description, amount or _ZERO)
        self._pending = None

    def finish(self) -> list[StatementRow]:
        pending = self._pending
        self._pending = None
        if pending is not None and pending.description and pending.has_amount:
            assert pending.amount is not None
            self._emit(pending.date, pending.description, pending.amount)
        return self.rows


def parse_statement_lines(
    lines: Iterable[str], *, default_year: int | None = None
) -> list[StatementRow]:
    parser = StatementLineParser(default_year=default_year)
    for line in lines:
        parser.feed(line)
    return parser.finish()


# ---------------------------------------------------------------------------
# Whole document
# ---------------------------------------------------------------------------


def segment_statement(
    pages: Iterable[Sequence[TextFragment]],
    *,
    default_year: int | None = None,
    max_lines: int = MAX_LINES,
    min_text_chars: int = MIN_TEXT_CHARS,
) -> TabularSource:
    """Turn the fragments of every page into a Date/Description/Amount table.

    Raises
    ------
    DocumentTooComplexError
        More than ``max_lines`` lines were reconstructed (checked per page so
        a pathological document stops early).
    NotTextPdfError
        Fewer than ``min_text_chars`` characters of text in the whole document.
    NoTransactionsFoundError
        The text parsed but contained no transactions.
    """

    all_lines: list[str] = []
    total_chars = 0
    n_pages = 0
    for page in pages:
        n_pages += 1
        total_chars += sum(len(frag.text) for frag in page)
        all_lines.extend(group_lines(page))
        if len(all_lines) > max_lines:
            _logger.warning("segment:too_many_lines pages=%d lines=%d", n_pages, len(all_lines))
            raise DocumentTooComplexError(max_lines)

    if total_chars < min_text_chars:
        _logger.warning("segment:no_text pages=%d chars=%d", n_pages, total_chars)
        raise NotTextPdfError()

    rows = parse_statement_lines(all_lines, default_year=default_year)
    _logger.info(
        "segment:done pages=%d lines=%d transactions=%d", n_pages, len(all_lines), len(rows)
    )
    if not rows:
        raise NoTransactionsFoundError("PDF")

    return TabularSource(headers=list(STATEMENT_HEADERS), rows=[r.as_cells() for r in rows])


__all__ = [
    "AmountToken",
    "MAX_LINES",
    "MIN_TEXT_CHARS",
    "ParserState",
    "STATEMENT_HEADERS",
    "StatementLineParser",
    "StatementRow",
    "TextFragment",
    "Y_TOLERANCE",
    "find_amount_tokens",
    "group_lines",
    "parse_statement_lines",
    "resolve_amount",
    "segment_statement",
]
