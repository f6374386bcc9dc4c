import pytest

from ledger_import.columns import detect_column_mapping
from ledger_import.errors import SchemaDetectionError
from ledger_import.models import ColumnMapping


def test_single_amount_layout():
    m = detect_column_mapping(["Date", "Description", "Amount", "Balance"])

    assert m is not None
    assert (m.date, m.description, m.amount, m.balance) == ("Date", "Description", "Amount", "Balance")
    assert m.debit is None and m.credit is None
    assert m.detected_format == "single-amount"


def test_debit_credit_layout():
    m = detect_column_mapping(
        ["Transaction Date", "Narrative", "Debit Amount", "Credit Amount", "Running Balance"]
    )

    assert m is not None
    assert m.date == "Transaction Date"
    assert m.description == "Narrative"
    # "Debit Amount" / "Credit Amount" are a pair, not a signed amount column.
    assert m.amount is None
    assert (m.debit, m.credit) == ("Debit Amount", "Credit Amount")
    assert m.balance == "Running Balance"


def test_debit_credit_pair_when_no_amount_column():
    m = detect_column_mapping(["Posted Date", "Details", "Withdrawals", "Deposits", "Balance"])

    assert m is not None
    assert m.amount is None
    assert (m.debit, m.credit) == ("Withdrawals", "Deposits")
    assert m.balance == "Balance"
    assert m.detected_format == "debit-credit"


def test_short_debit_credit_labels_match_exactly():
    m = detect_column_mapping(["Date", "Memo", "Dr", "Cr"])

    assert m is not None
    assert (m.debit, m.credit) == ("Dr", "Cr")


def test_exact_label_beats_earlier_substring_match():
    m = detect_column_mapping(["Value Date", "Transaction Date", "Description", "Amount"])

    assert m is not None
    assert m.date == "Transaction Date"


def test_case_insensitive_and_merchant_reference():
    m = detect_column_mapping(["DATE", "MEMO", "AMOUNT", "PAYEE", "Check Number"])

    assert m is not None
    assert m.description == "MEMO"
    assert m.merchant == "PAYEE"
    assert m.reference == "Check Number"


def test_balance_column_is_never_the_amount():
    m = detect_column_mapping(["Date", "Description", "Balance Total", "Value"])

    assert m is not None
    assert m.amount == "Value"
    assert m.balance == "Balance Total"


def test_description_fallback_skips_numeric_columns_with_samples():
    headers = ["Date", "Amount", "Code", "Payee Info"]
    samples = [["2024-01-02", "-5.00", "1234", "Corner Store"]]

    assert detect_column_mapping(headers).description == "Code"
    assert detect_column_mapping(headers, sample_rows=samples).description == "Payee Info"


def test_missing_date_or_amount_returns_none():
    assert detect_column_mapping(["Description", "Amount"]) is None
    assert detect_column_mapping(["Date", "Description"]) is None
    assert detect_column_mapping(["Date", "Description", "Debit"]) is None
    assert detect_column_mapping(["Date", "Amount"]) is None


def test_explicit_mapping_invariants():
    with pytest.raises(SchemaDetectionError):
        ColumnMapping(date="Date", description="Memo")
    with pytest.raises(SchemaDetectionError):
        ColumnMapping(date="Date", debit="Out")


def test_resolve_to_fixed_positions_and_description_fallback():
    headers = ("When", "Out", "In", "What")
    index = ColumnMapping(date="When", debit="Out", credit="In").resolve(headers)

    assert (index.date, index.debit, index.credit, index.description) == (0, 1, 2, 3)
    assert index.amount is None


def test_resolve_rejects_unknown_label():
    with pytest.raises(SchemaDetectionError):
        ColumnMapping(date="Date", amount="Amt").resolve(("Date", "Amount", "Memo"))
