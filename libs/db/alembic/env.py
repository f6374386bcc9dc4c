# ruff: noqa: I001
"""
Alembic environment for the ledger schema.

The target database is resolved at runtime, first match wins:

1. ``alembic -x database_url=...`` on the command line;
2. the ``DATABASE_URL`` environment variable (a ``.env`` in the working
   directory or the repository root is loaded first, never overriding);
3. ``sqlalchemy.url`` from an ini file, when one is used.

``target_metadata`` is the ledger models' metadata exported by ``db``, so
``alembic revision --autogenerate`` diffs against the ORM.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import engine_from_config, pool

_REPO_ROOT = Path(__file__).resolve().parents[3]

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")


def _load_env_files() -> None:  # pragma: no cover - side-effectful
    for candidate in (find_dotenv(usecwd=True), _REPO_ROOT / ".env"):
        if candidate and Path(candidate).is_file():
            load_dotenv(dotenv_path=candidate, override=False)


def _resolve_database_url() -> str:
    x_args = context.get_x_argument(as_dictionary=True)
    url = x_args.get("database_url") or os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "No database URL: pass -x database_url=..., set DATABASE_URL, "
            "or set sqlalchemy.url in the ini file."
        )
    return url


_load_env_files()
database_url = _resolve_database_url()
config.set_main_option("sqlalchemy.url", database_url)

# libs/db/src must be importable (installed package or on sys.path).
import db as _db_pkg  # noqa: E402

target_metadata = _db_pkg.metadata


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect and apply the pending revisions in one transaction."""
    engine = engine_from_config(
        {"sqlalchemy.url": database_url},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        with engine.connect() as connection:
            is_sqlite = connection.dialect.name == "sqlite"
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                # SQLite cannot ALTER constraints in place.
                render_as_batch=is_sqlite,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()
    logger.info("migrations applied to %s", engine.url.render_as_string(hide_password=True))


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
