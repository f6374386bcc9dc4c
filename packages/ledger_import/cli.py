# ruff: noqa: I001
"""CLI for the ``ledger_import`` package.

Typer-based console interface over ``ledger_import.api``. Environment variables
(notably ``DATABASE_URL`` and ``LEDGER_IMPORT_LOG_LEVEL``) are loaded from a
local ``.env`` using ``python-dotenv`` before any command runs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank-exported CSV files into the household ledger. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a bank-exported CSV file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler reports a clean error
    readable=True,
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


def _read_csv(csv_path: Path) -> str:
    try:
        return csv_path.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        typer.echo(f"Error: CSV file not found: {csv_path}", err=True)
        raise typer.Exit(1) from None
    except UnicodeDecodeError as exc:
        typer.echo(f"Error: CSV file is not valid UTF-8: {exc}", err=True)
        raise typer.Exit(1) from None


def _options(csv_path: Path, *, month_first: bool, skip_rows: int, delimiter: str, preview: bool):
    from .models import ImportOptions

    return ImportOptions(
        skip_rows=skip_rows,
        date_prefer_day_first=not month_first,
        file_name=csv_path.name,
        delimiter=delimiter,
        preview=preview,
    )


def _print_model(model) -> None:
    typer.echo(json.dumps(model.model_dump(mode="json", by_alias=True), indent=2))


@app.command("detect")
def detect_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    skip_rows: int = typer.Option(0, min=0, help="Preamble rows to drop before the header."),
    delimiter: str = typer.Option(",", help="Field delimiter."),
) -> None:
    """Print the column mapping detected from the CSV header."""

    from dataclasses import asdict

    from .columns import detect_column_mapping
    from .tokenizer import tokenize

    rows = tokenize(_read_csv(csv_path), delimiter=delimiter)[skip_rows:]
    if not rows:
        typer.echo("Error: CSV file is empty", err=True)
        raise typer.Exit(1)
    mapping = detect_column_mapping(rows[0].fields, sample_rows=[r.fields for r in rows[1:11]])
    if mapping is None:
        typer.echo(f"Error: could not detect a column mapping from {list(rows[0].fields)}", err=True)
        raise typer.Exit(1)
    payload = {"detectedFormat": mapping.detected_format, "mapping": asdict(mapping)}
    typer.echo(json.dumps(payload, indent=2))


@app.command("preview")
def preview_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    month_first: bool = typer.Option(
        False, "--month-first", help="Read ambiguous dates as MM/DD instead of DD/MM."
    ),
    skip_rows: int = typer.Option(0, min=0, help="Preamble rows to drop before the header."),
    delimiter: str = typer.Option(",", help="Field delimiter."),
) -> None:
    """Parse the CSV and print what would be imported; nothing is written."""

    from .api import preview_csv

    result = preview_csv(
        _read_csv(csv_path),
        _options(
            csv_path, month_first=month_first, skip_rows=skip_rows, delimiter=delimiter, preview=True
        ),
    )
    _print_model(result)
    # Schema-level failure; row errors still exit 0.
    if result.detected_format is None:
        raise typer.Exit(1)


@app.command("import")
def import_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    household_id: str = typer.Option(..., help="Household that owns the account."),
    account_id: str = typer.Option(..., help="Account receiving the transactions."),
    month_first: bool = typer.Option(
        False, "--month-first", help="Read ambiguous dates as MM/DD instead of DD/MM."
    ),
    skip_rows: int = typer.Option(0, min=0, help="Preamble rows to drop before the header."),
    delimiter: str = typer.Option(",", help="Field delimiter."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Import the CSV into an account and print the batch summary."""

    from .api import import_csv
    from .errors import LedgerImportError

    try:
        summary = import_csv(
            _read_csv(csv_path),
            household_id=household_id,
            account_id=account_id,
            options=_options(
                csv_path,
                month_first=month_first,
                skip_rows=skip_rows,
                delimiter=delimiter,
                preview=False,
            ),
            database_url=database_url,
        )
    except (LedgerImportError, RuntimeError) as exc:
        typer.echo(f"Error: import failed: {exc}", err=True)
        raise typer.Exit(1) from None
    _print_model(summary)


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
