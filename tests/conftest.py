"""Pytest configuration for test isolation.

Every test that touches the database gets its own file-backed SQLite database
under ``tmp_path``. Engines are cached per URL in ``db.client``; they are
disposed after each test so file handles do not leak across tests.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

# Make the workspace packages importable without an editable install.
_ROOT = Path(__file__).resolve().parents[1]
for _p in (_ROOT, _ROOT / "packages", _ROOT / "libs" / "db" / "src"):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from db.client import dispose_engines, session_scope  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db, seed_account  # noqa: E402

HOUSEHOLD = "household-1"
OTHER_HOUSEHOLD = "household-2"


@dataclass(frozen=True)
class Ledger:
    url: str
    household_id: str
    account_id: str
    savings_id: str
    foreign_account_id: str


@pytest.fixture(autouse=True)
def _dispose_engines():
    yield
    dispose_engines()


@pytest.fixture(autouse=True)
def _reset_package_logging():
    """Undo ``configure_logging`` (CLI tests) so caplog sees package records."""

    yield
    from ledger_import import logging_setup

    pkg = logging.getLogger("ledger_import")
    if logging_setup._handler is not None:
        pkg.removeHandler(logging_setup._handler)
        logging_setup._handler = None
    pkg.propagate = True
    pkg.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("LEDGER_IMPORT_LOG_LEVEL", raising=False)


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")


@pytest.fixture()
def ledger(db_url: str) -> Ledger:
    """Two accounts in one household plus one account in another household."""

    with session_scope(database_url=db_url) as s:
        account_id = seed_account(s, household_id=HOUSEHOLD, name="Everyday")
        savings_id = seed_account(s, household_id=HOUSEHOLD, name="Savings")
        foreign_id = seed_account(s, household_id=OTHER_HOUSEHOLD, name="Elsewhere")
    return Ledger(
        url=db_url,
        household_id=HOUSEHOLD,
        account_id=account_id,
        savings_id=savings_id,
        foreign_account_id=foreign_id,
    )
