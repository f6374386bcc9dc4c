from datetime import date
from decimal import Decimal

import pytest

from ledger_import.errors import RowParseError
from ledger_import.models import ColumnMapping, RawRow
from ledger_import.normalizers import normalize_rows, parse_amount, parse_date


@pytest.mark.parametrize(
    "raw, day_first, expected",
    [
        ("31/01/2024", True, date(2024, 1, 31)),
        ("01/31/2024", False, date(2024, 1, 31)),
        ("2024-01-31", True, date(2024, 1, 31)),
        ("2024-01-31", False, date(2024, 1, 31)),
        ("2024-01-31T13:45:00", True, date(2024, 1, 31)),
        ("2024/01/31", True, date(2024, 1, 31)),
        ("03/04/2024", True, date(2024, 4, 3)),
        ("03/04/2024", False, date(2024, 3, 4)),
        # First part above 12 can only be a day.
        ("25/12/2024", False, date(2024, 12, 25)),
        # Second part above 12 can only be a day.
        ("01/31/2024", True, date(2024, 1, 31)),
        ("31.01.24", True, date(2024, 1, 31)),
        ("15-06-99", True, date(1999, 6, 15)),
        ("31/01/2024 09:15", True, date(2024, 1, 31)),
        ("31 Jan 2024", True, date(2024, 1, 31)),
        ("Jan 31, 2024", True, date(2024, 1, 31)),
        ("20240131", True, date(2024, 1, 31)),
    ],
)
def test_parse_date(raw, day_first, expected):
    assert parse_date(raw, prefer_day_first=day_first) == expected


@pytest.mark.parametrize("raw", ["", "yesterday", "31/02/2024", "2024-13-01", "1/2"])
def test_parse_date_rejects(raw):
    with pytest.raises(RowParseError):
        parse_date(raw)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("(50.00)", Decimal("-50.00")),
        ("-12.5", Decimal("-12.50")),
        ("12.50-", Decimal("-12.50")),
        ("+7", Decimal("7.00")),
        ("€ 3,5", Decimal("3.50")),
        ("AUD 1,000", Decimal("1000.00")),
        ("1,000", Decimal("1000.00")),
        ("0.005", Decimal("0.01")),
        ("£-4.20", Decimal("-4.20")),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "NaN", "Infinity", "1e5", "1.2.3", "--5"])
def test_parse_amount_rejects(raw):
    with pytest.raises(RowParseError):
        parse_amount(raw)


def _rows(*records):
    return [RawRow(fields=tuple(r), row_number=i + 2) for i, r in enumerate(records)]


def test_normalize_rows_collects_errors_and_warnings():
    headers = ("Date", "Description", "Amount", "Balance")
    index = ColumnMapping(date="Date", description="Description", amount="Amount", balance="Balance").resolve(headers)
    rows = _rows(
        ("02/01/2024", "Salary", "2,500.00", "3,000.00"),
        ("03/01/2024", "Groceries", "(45.10)", "n/a"),
        ("not a date", "Broken", "1.00", ""),
        ("04/01/2024", "Broken amount", "twelve", ""),
        ("05/01/2024", "", "-3.00"),
    )

    parsed, errors, warnings = normalize_rows(rows, index)

    assert [p.row_number for p in parsed] == [2, 3, 6]
    salary, groceries, blank = parsed
    assert (salary.date, salary.amount, salary.type) == (date(2024, 1, 2), Decimal("2500.00"), "income")
    assert salary.balance == Decimal("3000.00")
    assert (groceries.amount, groceries.type, groceries.balance) == (Decimal("45.10"), "expense", None)
    assert blank.description == ""
    assert groceries.raw["Balance"] == "n/a"

    assert [(e.row, e.message) for e in errors] == [
        (4, 'Invalid date: "not a date"'),
        (5, 'Invalid amount: "twelve"'),
    ]
    assert [w.row for w in warnings] == [3, 6, 6]
    assert "balance" in warnings[0].message.lower()
    assert warnings[1].message == "Empty description"


def test_debit_credit_columns_net_into_signed_amount():
    headers = ("Date", "Details", "Debit", "Credit")
    index = ColumnMapping(date="Date", description="Details", debit="Debit", credit="Credit").resolve(headers)
    rows = _rows(
        ("2024-02-01", "Rent", "1,200.00", ""),
        ("2024-02-02", "Refund", "", "19.99"),
        ("2024-02-03", "Odd export", "-5.00", ""),
        ("2024-02-04", "Bad", "x", ""),
    )

    parsed, errors, _ = normalize_rows(rows, index)

    assert [(p.amount, p.type) for p in parsed] == [
        (Decimal("1200.00"), "expense"),
        (Decimal("19.99"), "income"),
        (Decimal("5.00"), "expense"),
    ]
    assert [e.row for e in errors] == [5]


def test_unreadable_record_becomes_a_row_error():
    index = ColumnMapping(date="Date", description="Description", amount="Amount").resolve(
        ("Date", "Description", "Amount")
    )
    rows = [
        RawRow(fields=("02/01/2024", "Salary", "10.00"), row_number=2),
        RawRow(
            fields=(),
            row_number=3,
            error="Unreadable CSV record: field larger than field limit (131072)",
        ),
    ]

    parsed, errors, _ = normalize_rows(rows, index)

    assert [p.row_number for p in parsed] == [2]
    assert [(e.row, e.message) for e in errors] == [
        (3, "Unreadable CSV record: field larger than field limit (131072)")
    ]
