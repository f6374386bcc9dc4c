"""Import orchestration: one CSV file into one account.

Pipeline: tokenize → drop ``skip_rows`` preamble → header → detect or accept
the column mapping → normalize every data row → open an ``ImportBatch`` →
dedup against the ledger and within the file → classify → persist through the
ledger mutator → finalize the batch.

Schema problems raise ``SchemaDetectionError`` before anything is written.
After that, each unique row is persisted and committed on its own: a failure
rolls back only that row and is reported with its row number, so already
imported rows stay committed. Every data row ends up in exactly one of
``imported``, ``skipped`` (duplicate) or ``errors``.

``preview_import`` runs only the read-only front half of the pipeline, and
``run_import`` defers to it when ``ImportOptions.preview`` is set.
"""

from __future__ import annotations

from collections.abc import Sequence

from db.models.ledger import Account, ImportBatch
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .columns import detect_column_mapping
from .duplicates import candidate_key, filter_against_ledger, fingerprint, is_persisted
from .errors import AccountNotFoundError, SchemaDetectionError
from .ledger import create_transaction, lock_accounts
from .logging_setup import batch_logger, get_logger
from .models import (
    ColumnIndex,
    ImportOptions,
    ImportSummary,
    ParsedTransaction,
    PreviewResult,
    PreviewRow,
    RawRow,
    RowMessage,
    TransactionInput,
)
from .normalizers import normalize_rows
from .rules import classify, load_rule_snapshot, record_rule_match
from .tokenizer import tokenize

logger = get_logger("ledger_import.importer")

PREVIEW_LIMIT = 10
# Cap on the row messages folded into ImportBatch.error_message.
_ERROR_SUMMARY_LIMIT = 50


class _Prepared:
    """Front-half output shared by preview and import."""

    __slots__ = ("headers", "data_rows", "index", "detected_format", "parsed", "errors", "warnings")

    def __init__(
        self,
        headers: tuple[str, ...],
        data_rows: Sequence[RawRow],
        index: ColumnIndex,
        detected_format: str,
        parsed: list[ParsedTransaction],
        errors: list[RowMessage],
        warnings: list[RowMessage],
    ) -> None:
        self.headers = headers
        self.data_rows = data_rows
        self.index = index
        self.detected_format = detected_format
        self.parsed = parsed
        self.errors = errors
        self.warnings = warnings


def _prepare(csv_text: str, options: ImportOptions) -> _Prepared:
    rows = tokenize(csv_text, delimiter=options.delimiter)[options.skip_rows :]
    if len(rows) < 2:
        raise SchemaDetectionError(
            "CSV file is empty or has no data rows",
            headers=rows[0].fields if rows else (),
        )

    header, data_rows = rows[0], rows[1:]
    try:
        mapping = options.mapping
        if mapping is None:
            mapping = detect_column_mapping(
                header.fields, sample_rows=[r.fields for r in data_rows[:PREVIEW_LIMIT]]
            )
            if mapping is None:
                raise SchemaDetectionError(
                    "Could not detect column mapping; provide the date, amount "
                    "(or debit and credit) and description columns explicitly"
                )
        index = mapping.resolve(header.fields)
    except SchemaDetectionError as exc:
        if exc.headers:
            raise
        raise SchemaDetectionError(str(exc), headers=header.fields) from exc

    parsed, errors, warnings = normalize_rows(
        data_rows, index, prefer_day_first=options.date_prefer_day_first
    )
    return _Prepared(
        headers=header.fields,
        data_rows=data_rows,
        index=index,
        detected_format=mapping.detected_format,
        parsed=parsed,
        errors=errors,
        warnings=warnings,
    )


def preview_import(csv_text: str, options: ImportOptions | None = None) -> PreviewResult:
    """Parse without writing; return at most ``PREVIEW_LIMIT`` sample rows.

    A schema-level failure is reported as ``success=False`` with the message
    in ``errors`` (row 0), the examined header row and no ``detected_format``
    rather than raised.
    """

    options = options or ImportOptions(preview=True)
    try:
        prepared = _prepare(csv_text, options)
    except SchemaDetectionError as exc:
        return PreviewResult(
            success=False,
            headers=list(exc.headers),
            total_rows=0,
            parsed_count=0,
            errors=[RowMessage(row=0, message=str(exc))],
            warnings=[],
            preview=[],
        )
    return PreviewResult(
        success=not prepared.errors,
        headers=list(prepared.headers),
        total_rows=len(prepared.data_rows),
        parsed_count=len(prepared.parsed),
        errors=prepared.errors,
        warnings=prepared.warnings,
        preview=[
            PreviewRow(
                date=tx.date,
                amount=tx.amount,
                type=tx.type,
                description=tx.description,
                merchant=tx.merchant,
            )
            for tx in prepared.parsed[:PREVIEW_LIMIT]
        ],
        detected_format=prepared.detected_format,
    )


def _summarize_errors(errors: Sequence[RowMessage]) -> str | None:
    if not errors:
        return None
    lines = [f"Row {e.row}: {e.message}" for e in errors[:_ERROR_SUMMARY_LIMIT]]
    if len(errors) > _ERROR_SUMMARY_LIMIT:
        lines.append(f"... and {len(errors) - _ERROR_SUMMARY_LIMIT} more")
    return "\n".join(lines)


def run_import(
    session: Session,
    *,
    household_id: str,
    account_id: str,
    csv_text: str,
    options: ImportOptions | None = None,
) -> ImportSummary | PreviewResult:
    """Import ``csv_text`` into ``account_id`` and return the batch summary.

    With ``options.preview`` set the account is still checked, then the
    preview is returned and nothing is written.

    The session is committed as the import progresses (batch creation, each
    imported row, finalization); pass a session that is not shared with
    other pending work.
    """

    options = options or ImportOptions()

    account = session.scalar(
        select(Account).where(Account.id == account_id, Account.household_id == household_id)
    )
    if account is None:
        raise AccountNotFoundError(f"account {account_id} not found")
    currency = account.currency
    if options.preview:
        return preview_import(csv_text, options)

    prepared = _prepare(csv_text, options)
    total_rows = len(prepared.data_rows)

    batch = ImportBatch(
        household_id=household_id,
        source="csv",
        file_name=options.file_name,
        account_id=account_id,
        total_rows=total_rows,
        status="processing",
    )
    session.add(batch)
    session.commit()
    batch_id = batch.id
    log = batch_logger(logger, batch_id)
    log.info(
        "importing %d rows into account %s (%s, %d parse errors)",
        total_rows,
        account_id,
        prepared.detected_format,
        len(prepared.errors),
    )

    errors: list[RowMessage] = list(prepared.errors)
    unique, duplicates = filter_against_ledger(
        session, account_id=account_id, candidates=prepared.parsed
    )
    snapshot = load_rule_snapshot(session, household_id=household_id, account_id=account_id)

    imported = 0
    late_duplicates = 0
    for tx in unique:
        rule = classify(
            snapshot,
            description=tx.description,
            merchant=tx.merchant,
            transaction_type=tx.type,
            account_id=account_id,
        )
        try:
            # Re-check under the account lock; another import may have
            # committed this row since the batch-level filter ran.
            lock_accounts(session, household_id=household_id, account_ids=[account_id])
            if is_persisted(session, account_id=account_id, candidate=tx):
                session.rollback()
                log.info("row %d was imported concurrently, skipping", tx.row_number)
                late_duplicates += 1
                continue
            create_transaction(
                session,
                household_id=household_id,
                account_id=account_id,
                data=TransactionInput(
                    type=tx.type,
                    amount=tx.amount,
                    date=tx.date,
                    currency=currency,
                    description=tx.description,
                    merchant=tx.merchant,
                    reference=tx.reference,
                    category_id=rule.category_id if rule else None,
                ),
                category_source="rule" if rule else "import",
                import_batch_id=batch_id,
                external_id=fingerprint(candidate_key(tx)),
            )
            if rule is not None:
                record_rule_match(session, rule.id)
            session.commit()
        except Exception as exc:
            session.rollback()
            log.warning("row %d failed: %s", tx.row_number, exc)
            errors.append(RowMessage(row=tx.row_number, message=str(exc)))
            continue
        imported += 1

    errors.sort(key=lambda e: e.row)
    skipped = len(duplicates) + late_duplicates
    status = "failed" if total_rows and len(errors) == total_rows else "completed"

    batch = session.get(ImportBatch, batch_id)
    assert batch is not None
    batch.imported_count = imported
    batch.skipped_count = skipped
    batch.error_count = len(errors)
    batch.status = status
    batch.error_message = _summarize_errors(errors)
    batch.completed_at = func.now()
    session.commit()

    log.info(
        "import %s: imported=%d skipped=%d errors=%d",
        status,
        imported,
        skipped,
        len(errors),
    )
    return ImportSummary(
        batch_id=batch_id,
        total_rows=total_rows,
        imported=imported,
        skipped=skipped,
        errors=len(errors),
        parse_errors=errors,
    )


def list_import_batches(session: Session, *, household_id: str, limit: int = 20) -> list[ImportBatch]:
    """Most recent batches first."""

    stmt = (
        select(ImportBatch)
        .where(ImportBatch.household_id == household_id)
        .order_by(ImportBatch.created_at.desc(), ImportBatch.id)
        .limit(limit)
    )
    return list(session.scalars(stmt))


__all__ = ["PREVIEW_LIMIT", "preview_import", "run_import", "list_import_batches"]
