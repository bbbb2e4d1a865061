"""CLI for the ``spend_analysis`` package.

A Typer console interface over :mod:`spend_analysis.api`. The root callback
loads a local ``.env`` (notably ``OPENAI_API_KEY``) with ``python-dotenv`` and
configures logging before any command runs. Output is rendered with Rich.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typer.models import ArgumentInfo

from .api import AnalysisResult, analyze_file
from .categorize import ClassifierItem
from .config import Settings
from .errors import StatementError
from .formatting import format_currency, format_date, format_percent
from .logging_setup import configure_logging
from .models import CATEGORY_STYLES, CategorizedTransaction, Frequency, Severity

console = Console()


class OfflineClassifier:
    """Answers every batch with no entries, so each transaction becomes ``Other``/0."""

    def classify(self, items: Sequence[ClassifierItem]) -> list[dict]:
        return []


# ---- Rendering ----------------------------------------------------------------


def _summary_table(result: AnalysisResult) -> Table:
    s = result.dashboard.summary
    table = Table(title="Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Transactions", str(s.transaction_count))
    table.add_row("Total spent", format_currency(s.total_spent))
    table.add_row("Total income", format_currency(s.total_income))
    table.add_row("Net", format_currency(s.net))
    style = CATEGORY_STYLES[s.top_category]
    table.add_row("Top category", f"{style.icon} {s.top_category}")
    if s.date_range.start and s.date_range.end:
        table.add_row(
            "Period", f"{format_date(s.date_range.start)} - {format_date(s.date_range.end)}"
        )
    return table


def _breakdown_table(result: AnalysisResult) -> Table:
    table = Table(title="Spending by category")
    table.add_column("Category")
    table.add_column("Total", justify="right")
    table.add_column("Count", justify="right")
    table.add_column("Share", justify="right")
    for row in result.dashboard.breakdown:
        icon = CATEGORY_STYLES[row.category].icon
        table.add_row(
            f"[{row.color}]{icon} {row.category}[/]",
            format_currency(row.total),
            str(row.count),
            format_percent(row.percentage),
        )
    return table


def _timeline_table(result: AnalysisResult) -> Table:
    table = Table(title="Monthly timeline")
    table.add_column("Month")
    table.add_column("Total", justify="right")
    for period in result.dashboard.timeline:
        table.add_row(period.period, format_currency(period.total))
    return table


def _merchants_table(result: AnalysisResult) -> Table:
    table = Table(title="Top merchants")
    table.add_column("Merchant")
    table.add_column("Total", justify="right")
    table.add_column("Count", justify="right")
    for m in result.dashboard.top_merchants:
        table.add_row(escape(m.merchant), format_currency(m.total), str(m.count))
    return table


_FREQUENCY_LABEL = {Frequency.WEEKLY: "/wk", Frequency.MONTHLY: "/mo", Frequency.YEARLY: "/yr"}


def _subscriptions_table(result: AnalysisResult) -> Table:
    table = Table(title="Subscriptions")
    table.add_column("Merchant")
    table.add_column("Amount", justify="right")
    table.add_column("Next charge")
    table.add_column("Confidence", justify="right")
    for sub in result.dashboard.subscriptions:
        table.add_row(
            escape(sub.merchant),
            f"{format_currency(sub.amount)}{_FREQUENCY_LABEL[sub.frequency]}",
            format_date(sub.next_expected_charge),
            f"{sub.confidence:.0%}",
        )
    return table


_SEVERITY_STYLE = {Severity.HIGH: "red", Severity.MEDIUM: "yellow", Severity.LOW: "blue"}


def _anomalies_table(result: AnalysisResult) -> Table:
    table = Table(title="Anomalies")
    table.add_column("Severity")
    table.add_column("Date")
    table.add_column("Merchant")
    table.add_column("Details")
    for a in result.dashboard.anomalies:
        color = _SEVERITY_STYLE[a.severity]
        table.add_row(
            f"[{color}]{a.severity}[/]", a.date, escape(a.merchant), escape(a.description)
        )
    return table


def _transactions_table(transactions: Sequence[CategorizedTransaction]) -> Table:
    table = Table(title="Transactions")
    table.add_column("Id")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    table.add_column("Confidence", justify="right")
    for tx in transactions:
        table.add_row(
            tx.id,
            tx.date,
            escape(tx.description),
            format_currency(tx.amount),
            str(tx.category),
            f"{tx.confidence:.2f}",
        )
    return table


def render_result(result: AnalysisResult, *, show_transactions: bool = False) -> None:
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if result.dropped_rows:
        console.print(f"[dim]Skipped {len(result.dropped_rows)} unreadable row(s).[/dim]")

    console.print(_summary_table(result))
    if result.dashboard.breakdown:
        console.print(_breakdown_table(result))
    if result.dashboard.timeline:
        console.print(_timeline_table(result))
    if result.dashboard.top_merchants:
        console.print(_merchants_table(result))
    if result.dashboard.subscriptions:
        console.print(_subscriptions_table(result))
    if result.dashboard.anomalies:
        console.print(_anomalies_table(result))
    if show_transactions:
        console.print(_transactions_table(result.transactions))


# ---- Typer-based console interface --------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Analyze a bank statement export (CSV or text-based PDF): categorize "
        "transactions with OpenAI and report spending, subscriptions, and anomalies."
    ),
)

# Module-level argument object so the command signature holds no calls.
STATEMENT_PATH_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Path to a .csv or .pdf statement export",
    dir_okay=False,
    file_okay=True,
    exists=True,
    readable=True,
)


@app.command("analyze")
def analyze_cmd(
    path: Annotated[Path, STATEMENT_PATH_ARGUMENT],
    *,
    top: Annotated[int, typer.Option(min=1, help="Number of merchants to list.")] = 10,
    offline: Annotated[
        bool, typer.Option(help="Skip the AI classifier; every transaction becomes Other.")
    ] = False,
    model: Annotated[
        str | None, typer.Option(help="OpenAI model (falls back to SPEND_ANALYSIS_MODEL).")
    ] = None,
    show_transactions: Annotated[
        bool, typer.Option(help="Also print every categorized transaction.")
    ] = False,
) -> None:
    """Analyze one statement file and print the dashboard."""

    settings = Settings.from_env()
    if model:
        settings = replace(settings, model=model)

    try:
        result = analyze_file(
            path,
            classifier=OfflineClassifier() if offline else None,
            settings=settings,
            top_merchants=top,
        )
    except StatementError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    render_result(result, show_transactions=show_transactions)


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option(help="Log level (falls back to SPEND_ANALYSIS_LOG_LEVEL, then INFO)."),
    ] = None,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory without overriding
    already-set environment variables, then configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m spend_analysis.cli`
    app()
