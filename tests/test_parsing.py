from __future__ import annotations

from decimal import Decimal

import pytest

from spend_analysis.formatting import format_currency, format_date, format_percent
from spend_analysis.parsing import days_between, expand_two_digit_year, parse_amount, parse_date

# ---- Dates -------------------------------------------------------------------


@pytest.mark.parametrize("raw", ["2024-03-05", "03/05/2024", "3/5/24"])
def test_parse_date_common_shapes_agree(raw: str) -> None:
    assert parse_date(raw) == "2024-03-05"


def test_parse_date_day_first_when_month_slot_is_invalid() -> None:
    assert parse_date("25/03/2024") == "2024-03-25"


def test_parse_date_prefers_month_first_when_ambiguous() -> None:
    assert parse_date("04/05/2024") == "2024-04-05"


def test_parse_date_two_digit_year_century_split() -> None:
    assert parse_date("1/2/99") == "1999-01-02"
    assert parse_date("1/2/49") == "2049-01-02"
    assert expand_two_digit_year(50) == 1950


def test_parse_date_missing_year_uses_default() -> None:
    assert parse_date("03/05", default_year=2023) == "2023-03-05"
    assert parse_date("Jan 5", default_year=2022) == "2022-01-05"
    assert parse_date("January 5, 2024") == "2024-01-05"


@pytest.mark.parametrize("raw", ["03/05", "3.5", "10-12", "Jan 5"])
def test_parse_date_year_less_cells_need_a_default_year(raw: str) -> None:
    assert parse_date(raw) is None


@pytest.mark.parametrize("raw", ["", "   ", "not a date", "2024-02-30", "13/13/2024", None])
def test_parse_date_rejects_invalid(raw: str | None) -> None:
    assert parse_date(raw) is None


def test_days_between_is_absolute() -> None:
    assert days_between("2024-01-31", "2024-03-01") == 30
    assert days_between("2024-03-01", "2024-01-31") == 30


# ---- Amounts -----------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("(12.50)", Decimal("-12.50")),
        ("$1,234.56", Decimal("1234.56")),
        ("-$5.00", Decimal("-5.00")),
        ("\u22127.25", Decimal("-7.25")),
        ("  42 ", Decimal("42")),
        ("€ 1 000.10", Decimal("1000.10")),
    ],
)
def test_parse_amount_shapes(raw: str, expected: Decimal) -> None:
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "1.2.3", "NaN", "inf", "$", None])
def test_parse_amount_rejects_unparsable(raw: str | None) -> None:
    assert parse_amount(raw) is None


# ---- Display formatting --------------------------------------------------------


def test_format_currency_us_style() -> None:
    assert format_currency(Decimal("1234.5")) == "$1,234.50"
    assert format_currency(Decimal("-0.005")) == "-$0.01"
    assert format_currency(0) == "$0.00"


def test_format_percent_and_date() -> None:
    assert format_percent(12.345) == "12.3%"
    assert format_date("2024-03-05") == "Mar 5, 2024"
    assert format_date("garbage") == "garbage"
