"""One user's working set of categorized transactions.

A session holds the result of the most recent upload and the user's manual
category overrides on it. Every dashboard is recomputed from the current
transactions; nothing derived is cached. Sessions are not thread-safe.
"""

from __future__ import annotations

from pathlib import Path

from .api import Dashboard, build_dashboard, load_csv_transactions, load_statement
from .categorize import TransactionClassifier, categorize_transactions, recategorize
from .config import Settings
from .logging_setup import get_logger
from .models import CategorizedTransaction, Category
from .tabular import NormalizedTable

_logger = get_logger("spend_analysis.session")


class StatementSession:
    def __init__(
        self,
        *,
        classifier: TransactionClassifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._classifier = classifier
        self._settings = settings or Settings.from_env()
        self._transactions: list[CategorizedTransaction] = []
        self._warnings: list[str] = []
        self._dropped_rows: list[int] = []

    @property
    def transactions(self) -> tuple[CategorizedTransaction, ...]:
        return tuple(self._transactions)

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(self._warnings)

    @property
    def dropped_rows(self) -> tuple[int, ...]:
        return tuple(self._dropped_rows)

    # ---- Upload -----------------------------------------------------------

    def _accept(self, loaded: NormalizedTable) -> list[CategorizedTransaction]:
        outcome = categorize_transactions(
            loaded.transactions, classifier=self._classifier, settings=self._settings
        )
        self._transactions = list(outcome.transactions)
        self._warnings = list(outcome.warnings)
        self._dropped_rows = list(loaded.dropped_rows)
        _logger.info(
            "session:upload transactions=%d dropped=%d degraded=%s",
            len(self._transactions),
            len(self._dropped_rows),
            outcome.degraded,
        )
        return list(self._transactions)

    def upload(self, path: str | Path) -> list[CategorizedTransaction]:
        """Replace the working set with the contents of a statement file.

        On a :class:`~spend_analysis.errors.StatementError` the previous
        working set is kept.
        """

        return self._accept(load_statement(path, settings=self._settings))

    def upload_csv_text(self, csv_text: str) -> list[CategorizedTransaction]:
        return self._accept(load_csv_transactions(csv_text, settings=self._settings))

    # ---- Edits ------------------------------------------------------------

    def override_category(self, transaction_id: str, category: Category) -> CategorizedTransaction:
        """Pin ``category`` on one transaction; raises ``KeyError`` for an unknown id."""

        for i, tx in enumerate(self._transactions):
            if tx.id == transaction_id:
                updated = tx.with_override(Category(category))
                self._transactions[i] = updated
                return updated
        raise KeyError(transaction_id)

    def recategorize(self) -> list[str]:
        """Re-run the classifier on every record the user has not overridden."""

        outcome = recategorize(
            self._transactions, classifier=self._classifier, settings=self._settings
        )
        self._transactions = list(outcome.transactions)
        self._warnings = list(outcome.warnings)
        return list(outcome.warnings)

    def reset(self) -> None:
        self._transactions = []
        self._warnings = []
        self._dropped_rows = []

    # ---- Views ------------------------------------------------------------

    def dashboard(self, *, top_merchants: int = 10) -> Dashboard:
        return build_dashboard(self._transactions, top_merchants=top_merchants)


__all__ = ["StatementSession"]
