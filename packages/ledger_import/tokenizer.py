"""Row tokenizer: raw CSV text → ``RawRow`` records.

Parsing follows RFC 4180 via the stdlib :mod:`csv` module (quoted fields with
embedded separators and newlines, doubled-quote escaping, ``\\r\\n`` or ``\\n``
terminators). The reader runs in non-strict mode so stray quotes only corrupt
the field they appear in. Fields are trimmed and fully empty records dropped.
"""

from __future__ import annotations

import csv
from io import StringIO

from .logging_setup import get_logger
from .models import RawRow

logger = get_logger("ledger_import.tokenizer")

_BOM = "\ufeff"


def tokenize(csv_text: str, *, delimiter: str = ",") -> list[RawRow]:
    """Split ``csv_text`` into trimmed rows numbered by their first source line.

    A record the reader cannot parse at all (e.g. a runaway quoted field that
    exceeds the csv field size limit) is kept as a ``RawRow`` carrying the
    reader error, so it is counted and reported like any other bad row;
    tokenizing resumes with the following record.
    """

    if csv_text.startswith(_BOM):
        csv_text = csv_text[len(_BOM) :]

    rows: list[RawRow] = []
    with StringIO(csv_text, newline="") as f:
        reader = csv.reader(f, delimiter=delimiter, strict=False)
        start_line = 1
        while True:
            try:
                fields = next(reader)
            except StopIteration:
                break
            except csv.Error as exc:
                logger.warning("unreadable CSV record at line %d: %s", start_line, exc)
                rows.append(
                    RawRow(fields=(), row_number=start_line, error=f"Unreadable CSV record: {exc}")
                )
                start_line = reader.line_num + 1
                continue
            row = RawRow(fields=tuple(v.strip() for v in fields), row_number=start_line)
            start_line = reader.line_num + 1
            if not row.is_blank():
                rows.append(row)
    return rows


__all__ = ["tokenize"]
