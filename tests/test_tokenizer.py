import csv
import textwrap

from ledger_import.tokenizer import tokenize


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def test_quoted_fields_with_separators_newlines_and_escaped_quotes():
    csv_text = _dedent(
        '''
        Date,Description,Amount
        2024-01-02,"Coffee, large",-4.50
        2024-01-03,"Multi
        line memo",-10.00
        2024-01-04,"He said ""hi""",12.00
        '''
    )

    rows = tokenize(csv_text)

    assert [r.fields for r in rows] == [
        ("Date", "Description", "Amount"),
        ("2024-01-02", "Coffee, large", "-4.50"),
        ("2024-01-03", "Multi\nline memo", "-10.00"),
        ("2024-01-04", 'He said "hi"', "12.00"),
    ]
    # Row numbers are the physical line each record starts on.
    assert [r.row_number for r in rows] == [1, 2, 3, 5]


def test_crlf_terminators_trimming_and_blank_rows_dropped():
    csv_text = "Date , Amount\r\n\r\n 2024-01-02 ,  5.00 \r\n,\r\n2024-01-03,6.00\r\n"

    rows = tokenize(csv_text)

    assert [r.fields for r in rows] == [
        ("Date", "Amount"),
        ("2024-01-02", "5.00"),
        ("2024-01-03", "6.00"),
    ]
    assert [r.row_number for r in rows] == [1, 3, 5]


def test_byte_order_mark_is_ignored():
    rows = tokenize("\ufeffDate,Amount\n2024-01-02,1.00\n")
    assert rows[0].fields == ("Date", "Amount")


def test_stray_quote_only_corrupts_its_own_field():
    csv_text = 'Date,Description,Amount\n2024-01-02,Joe"s Diner,-8.00\n2024-01-03,Ok,1.00\n'

    rows = tokenize(csv_text)

    assert len(rows) == 3
    assert rows[1].fields[0] == "2024-01-02"
    assert rows[1].fields[2] == "-8.00"
    assert rows[2].fields == ("2024-01-03", "Ok", "1.00")


def test_custom_delimiter():
    rows = tokenize("Date;Amount\n2024-01-02;1,50\n", delimiter=";")
    assert rows[1].fields == ("2024-01-02", "1,50")


def test_empty_text_yields_no_rows():
    assert tokenize("") == []
    assert tokenize("\n\n") == []


def test_unreadable_record_is_kept_with_its_error():
    oversized = "x" * (csv.field_size_limit() + 1)
    csv_text = (
        "Date,Description,Amount\n"
        "2024-01-02,Coffee,-4.50\n"
        f'2024-01-03,"{oversized}",-1.00\n'
        "2024-01-04,Tea,-3.00\n"
    )

    rows = tokenize(csv_text)

    assert [r.row_number for r in rows] == [1, 2, 3, 4]
    bad = rows[2]
    assert bad.fields == ()
    assert bad.error.startswith("Unreadable CSV record")
    assert not bad.is_blank()
    assert rows[3].fields == ("2024-01-04", "Tea", "-3.00")
