from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ledger_import.cli import app
from tests.helpers.db import balance_of, transaction_count

STATEMENT = Path(__file__).resolve().parent / "data" / "checking_statement.csv"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # The root callback loads .env from the working directory.
    monkeypatch.chdir(tmp_path)


def test_detect_prints_mapping():
    result = runner.invoke(app, ["detect", "--csv-path", str(STATEMENT)])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["detectedFormat"] == "debit-credit"
    assert payload["mapping"] == {
        "date": "Transaction Date",
        "description": "Details",
        "amount": None,
        "debit": "Debit",
        "credit": "Credit",
        "merchant": "Payee",
        "reference": None,
        "balance": "Balance",
    }


def test_detect_fails_on_unrecognised_header(tmp_path: Path):
    csv_path = tmp_path / "odd.csv"
    csv_path.write_text("Foo,Bar\n1,2\n", encoding="utf-8")

    result = runner.invoke(app, ["detect", "--csv-path", str(csv_path)])

    assert result.exit_code == 1
    assert "could not detect" in result.output


def test_preview_outputs_camel_case_json():
    result = runner.invoke(app, ["preview", "--csv-path", str(STATEMENT)])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["success"] is False
    assert payload["totalRows"] == 10
    assert payload["parsedCount"] == 9
    assert payload["detectedFormat"] == "debit-credit"
    assert payload["errors"] == [{"row": 10, "message": 'Invalid date: "31/09/2025"'}]
    assert len(payload["preview"]) == 9
    first = payload["preview"][0]
    assert (first["date"], first["amount"], first["type"]) == ("2025-09-02", "3250.00", "income")
    assert first["merchant"] == "ACME Pty Ltd"


def test_preview_schema_failure_exits_nonzero(tmp_path: Path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("", encoding="utf-8")

    result = runner.invoke(app, ["preview", "--csv-path", str(csv_path)])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["errors"][0]["row"] == 0


def test_preview_unrecognised_header_exits_nonzero_and_echoes_it(tmp_path: Path):
    csv_path = tmp_path / "odd.csv"
    csv_path.write_text("Foo,Bar\n1,2\n", encoding="utf-8")

    result = runner.invoke(app, ["preview", "--csv-path", str(csv_path)])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["headers"] == ["Foo", "Bar"]
    assert payload["detectedFormat"] is None


def test_missing_file_is_reported(tmp_path: Path):
    result = runner.invoke(app, ["preview", "--csv-path", str(tmp_path / "nope.csv")])

    assert result.exit_code == 1
    assert "CSV file not found" in result.output


def test_import_writes_and_reports_summary(ledger):
    args = [
        "import",
        "--csv-path",
        str(STATEMENT),
        "--household-id",
        ledger.household_id,
        "--account-id",
        ledger.account_id,
        "--database-url",
        ledger.url,
    ]

    first = runner.invoke(app, args)
    assert first.exit_code == 0, first.output
    summary = json.loads(first.stdout)
    assert (summary["totalRows"], summary["imported"], summary["skipped"], summary["errors"]) == (10, 9, 0, 1)
    assert balance_of(ledger.url, ledger.account_id) == Decimal("2560.11")

    second = runner.invoke(app, args)
    assert second.exit_code == 0, second.output
    assert json.loads(second.stdout)["imported"] == 0
    assert transaction_count(ledger.url) == 9


def test_import_reads_database_url_from_env(ledger, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", ledger.url)

    result = runner.invoke(
        app,
        [
            "import",
            "--csv-path",
            str(STATEMENT),
            "--household-id",
            ledger.household_id,
            "--account-id",
            ledger.account_id,
        ],
    )

    assert result.exit_code == 0, result.output
    assert transaction_count(ledger.url, ledger.account_id) == 9


def test_import_into_unknown_account_fails(ledger):
    result = runner.invoke(
        app,
        [
            "import",
            "--csv-path",
            str(STATEMENT),
            "--household-id",
            ledger.household_id,
            "--account-id",
            ledger.foreign_account_id,
            "--database-url",
            ledger.url,
        ],
    )

    assert result.exit_code == 1
    assert "import failed" in result.output
    assert transaction_count(ledger.url) == 0


def test_import_without_database_url_fails(ledger):
    result = runner.invoke(
        app,
        [
            "import",
            "--csv-path",
            str(STATEMENT),
            "--household-id",
            ledger.household_id,
            "--account-id",
            ledger.account_id,
        ],
    )

    assert result.exit_code == 1
    assert "DATABASE_URL is not set" in result.output
