"""Public pipeline surface for ``spend_analysis``.

Loading turns a CSV or PDF statement into raw transactions and enforces the
per-upload limits; :func:`build_dashboard` computes every derived view from a
categorized collection; :func:`analyze_file` runs the whole thing once.

Document-level problems raise :class:`~spend_analysis.errors.StatementError`
subclasses. Categorization problems never raise here; they come back as
warnings on the result.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .analytics import (
    build_category_breakdown,
    build_spending_timeline,
    build_top_merchants,
    get_summary_stats,
)
from .anomalies import detect_anomalies
from .categorize import TransactionClassifier, categorize_transactions
from .config import Settings
from .errors import (
    InputTooLargeError,
    MissingColumnsError,
    NoTransactionsFoundError,
    UnsupportedFileError,
)
from .logging_setup import get_logger
from .models import (
    PDF_MAPPING,
    Anomaly,
    CategorizedTransaction,
    CategoryBreakdown,
    ColumnMapping,
    MerchantSummary,
    Subscription,
    SummaryStats,
    TabularSource,
    TimelinePeriod,
    Transactions,
)
from .pdf_text import PdfInput, iter_page_fragments
from .segmenter import TextFragment, segment_statement
from .subscriptions import detect_subscriptions
from .tabular import NormalizedTable, detect_columns, normalize_table, read_csv_table

_logger = get_logger("spend_analysis.api")

SUPPORTED_SUFFIXES: tuple[str, ...] = (".csv", ".pdf")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _check_row_limit(table: TabularSource, settings: Settings) -> None:
    if len(table.rows) > settings.max_rows:
        _logger.warning("load:too_many_rows rows=%d limit=%d", len(table.rows), settings.max_rows)
        raise InputTooLargeError(len(table.rows), settings.max_rows)


def _normalize(
    table: TabularSource, mapping: ColumnMapping, *, source: str, settings: Settings
) -> NormalizedTable:
    _check_row_limit(table, settings)
    result = normalize_table(table, mapping)
    _logger.info(
        "load:done source=%s rows=%d transactions=%d dropped=%d",
        source,
        result.total_rows,
        len(result.transactions),
        len(result.dropped_rows),
    )
    if not result.transactions:
        raise NoTransactionsFoundError("PDF" if source == "pdf" else "file")
    return result


def load_csv_transactions(
    csv_text: str, *, mapping: ColumnMapping | None = None, settings: Settings | None = None
) -> NormalizedTable:
    """Parse CSV text into raw transactions.

    Columns are detected from the header row unless ``mapping`` is given.

    Raises
    ------
    EmptyInputError
        No header row.
    MissingColumnsError
        Date, description, or amount column could not be identified.
    InputTooLargeError
        More data rows than ``settings.max_rows``.
    NoTransactionsFoundError
        Every row was dropped during normalization.
    """

    cfg = settings or Settings.from_env()
    table = read_csv_table(csv_text)
    resolved = mapping or detect_columns(table.headers)
    if resolved is None:
        raise MissingColumnsError(table.headers)
    return _normalize(table, resolved, source="csv", settings=cfg)


def load_pdf_pages(
    pages: Iterable[Sequence[TextFragment]],
    *,
    default_year: int | None = None,
    settings: Settings | None = None,
) -> NormalizedTable:
    """Segment already-extracted page fragments into raw transactions."""

    cfg = settings or Settings.from_env()
    table = segment_statement(pages, default_year=default_year)
    return _normalize(table, PDF_MAPPING, source="pdf", settings=cfg)


def load_pdf_transactions(
    source: PdfInput, *, default_year: int | None = None, settings: Settings | None = None
) -> NormalizedTable:
    return load_pdf_pages(iter_page_fragments(source), default_year=default_year, settings=settings)


def load_statement(path: str | Path, *, settings: Settings | None = None) -> NormalizedTable:
    """Load a ``.csv`` or ``.pdf`` statement from disk, chosen by file extension."""

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise UnsupportedFileError(p.name)
    if suffix == ".pdf":
        return load_pdf_transactions(p, settings=settings)
    text = p.read_text(encoding="utf-8", errors="replace")
    return load_csv_transactions(text, settings=settings)


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Dashboard:
    """Every derived view over one categorized collection."""

    summary: SummaryStats
    breakdown: list[CategoryBreakdown]
    timeline: list[TimelinePeriod]
    top_merchants: list[MerchantSummary]
    subscriptions: list[Subscription]
    anomalies: list[Anomaly]


def build_dashboard(transactions: Transactions, *, top_merchants: int = 10) -> Dashboard:
    return Dashboard(
        summary=get_summary_stats(transactions),
        breakdown=build_category_breakdown(transactions),
        timeline=build_spending_timeline(transactions),
        top_merchants=build_top_merchants(transactions, limit=top_merchants),
        subscriptions=detect_subscriptions(transactions),
        anomalies=detect_anomalies(transactions),
    )


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    transactions: list[CategorizedTransaction]
    dashboard: Dashboard
    warnings: list[str] = field(default_factory=list)
    dropped_rows: list[int] = field(default_factory=list)


def analyze_file(
    path: str | Path,
    *,
    classifier: TransactionClassifier | None = None,
    settings: Settings | None = None,
    top_merchants: int = 10,
) -> AnalysisResult:
    """Load, categorize, and summarize one statement file."""

    cfg = settings or Settings.from_env()
    loaded = load_statement(path, settings=cfg)
    outcome = categorize_transactions(loaded.transactions, classifier=classifier, settings=cfg)
    return AnalysisResult(
        transactions=outcome.transactions,
        dashboard=build_dashboard(outcome.transactions, top_merchants=top_merchants),
        warnings=list(outcome.warnings),
        dropped_rows=list(loaded.dropped_rows),
    )


__all__ = [
    "AnalysisResult",
    "Dashboard",
    "SUPPORTED_SUFFIXES",
    "analyze_file",
    "build_dashboard",
    "load_csv_transactions",
    "load_pdf_pages",
    "load_pdf_transactions",
    "load_statement",
]
