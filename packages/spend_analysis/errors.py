"""Document-level failures raised while turning an upload into transactions.

Row- and line-level problems are never raised; malformed rows are dropped
where they are read. The exceptions here abort processing of one upload and
carry a message the caller can show as-is. They subclass ``ValueError`` so
callers that only care about "bad input" can catch that.

Categorization failures are not represented here: the gateway recovers from
them and reports warnings instead.
"""

from __future__ import annotations

_TRY_CSV = "Please try a CSV export from your bank instead."


class StatementError(ValueError):
    """Base class for fatal-for-this-upload input problems."""


class EmptyInputError(StatementError):
    def __init__(self, message: str = "The file is empty or has no header row.") -> None:
        super().__init__(message)


class MalformedCsvError(StatementError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"The file could not be read as CSV ({reason}). "
            "Re-export it from your bank as a comma-separated file."
        )


class MissingColumnsError(StatementError):
    def __init__(self, headers: list[str]) -> None:
        self.headers = list(headers)
        shown = ", ".join(repr(h) for h in headers) or "(none)"
        super().__init__(
            "Could not find date, description, and amount columns in the header row "
            f"(found {shown}). Check that the first row of the file holds column names."
        )


class InputTooLargeError(StatementError):
    def __init__(self, rows: int, limit: int) -> None:
        self.rows = rows
        self.limit = limit
        super().__init__(
            f"The file has {rows} rows; at most {limit} can be analysed at once. "
            "Split the export into smaller date ranges and upload them separately."
        )


class NotTextPdfError(StatementError):
    def __init__(self) -> None:
        super().__init__(
            "Unable to extract text from this PDF. Please ensure it is a text-based PDF "
            f"(not a scanned image). {_TRY_CSV}"
        )


class DocumentTooComplexError(StatementError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"PDF is too large or complex to process (over {limit} lines). {_TRY_CSV}")


class NoTransactionsFoundError(StatementError):
    def __init__(self, source: str = "file") -> None:
        self.source = source
        super().__init__(
            f"No transactions could be found in this {source}. "
            f"The format may not be supported. {_TRY_CSV}"
        )


class UnsupportedFileError(StatementError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unsupported file type: {name!r}. Upload a .csv or .pdf statement.")


__all__ = [
    "DocumentTooComplexError",
    "EmptyInputError",
    "InputTooLargeError",
    "MalformedCsvError",
    "MissingColumnsError",
    "NoTransactionsFoundError",
    "NotTextPdfError",
    "StatementError",
    "UnsupportedFileError",
]
