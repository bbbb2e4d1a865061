"""Cell-level parsers for dates and amounts found in bank exports.

Both parsers are total: they return ``None`` for anything they cannot read
instead of raising, because a bad cell only ever drops its own row.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_SYMBOLS_RE = re.compile(r"[$€£¥₹]")
_NUMBER_RE = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")
_MINUS_SIGNS = ("-", "−")


def parse_amount(raw: str | None) -> Decimal | None:
    """Parse a money cell into a signed ``Decimal``.

    Handles currency symbols, thousands separators, surrounding parentheses
    (accounting negatives), and leading ``+``/``-``/Unicode minus in any
    order, e.g. ``"-$5.00"``, ``"$(1,234.56)"``, ``"(12.50)"``.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None

    negative = False
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith(_MINUS_SIGNS):
            negative = True
            s = s[1:].lstrip()
            changed = True
        stripped = _CURRENCY_SYMBOLS_RE.sub("", s, count=1) if _CURRENCY_SYMBOLS_RE.match(s) else s
        if stripped != s:
            s = stripped.lstrip()
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = _CURRENCY_SYMBOLS_RE.sub("", s).replace(",", "").replace(" ", "")
    if not _NUMBER_RE.match(s):
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return -d if negative else d


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_NUMERIC_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})(?:[/.\-](\d{4}|\d{2}))?(?:\s.*)?$")
_MONTH_NAME_RE = re.compile(
    r"^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+(\d{1,2})(?:st|nd|rd|th)?"
    r"(?:[,\s]+(\d{4}))?$",
    re.IGNORECASE,
)
_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


def expand_two_digit_year(yy: int) -> int:
    """``50..99`` map to the 1900s, ``00..49`` to the 2000s."""

    return 1900 + yy if yy >= 50 else 2000 + yy


def _iso_or_none(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date(raw: str | None, *, default_year: int | None = None) -> str | None:
    """Parse a date cell into ``YYYY-MM-DD``.

    Accepted shapes:

    - ISO ``YYYY-MM-DD`` (a trailing time part is ignored).
    - ``MM/DD/YYYY`` or ``DD/MM/YYYY``. Month-first wins whenever it yields a
      real date; day-first is tried only when it does not (e.g. ``25/03/2024``).
    - Two-digit years, e.g. ``3/5/24``.
    - Month-name dates (``January 5, 2024``).
    - Year-less forms (``03/05``, ``Jan 5``) only when ``default_year`` is
      given; otherwise they are rejected, so a stray ``3.5`` or ``10-12`` cell
      is not read as a date in the current year.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None

    m = _ISO_RE.match(s)
    if m:
        return _iso_or_none(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _NUMERIC_RE.match(s)
    if m:
        first, second = int(m.group(1)), int(m.group(2))
        year_txt = m.group(3)
        if year_txt is None:
            if default_year is None:
                return None
            year = default_year
        elif len(year_txt) == 2:
            year = expand_two_digit_year(int(year_txt))
        else:
            year = int(year_txt)
        return _iso_or_none(year, first, second) or _iso_or_none(year, second, first)

    m = _MONTH_NAME_RE.match(s.replace(",", ", ").strip())
    if m:
        month = _MONTHS[m.group(1).lower()]
        if m.group(3):
            year = int(m.group(3))
        elif default_year is not None:
            year = default_year
        else:
            return None
        return _iso_or_none(year, month, int(m.group(2)))

    return None


def days_between(a: str, b: str) -> int:
    """Absolute number of calendar days between two ISO dates."""

    return abs((date.fromisoformat(b) - date.fromisoformat(a)).days)


__all__ = ["days_between", "expand_two_digit_year", "parse_amount", "parse_date"]
