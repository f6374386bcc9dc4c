"""Centralized logging configuration for the ``ledger_import`` package.

Public helpers:

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger (``"ledger_import"``). Called by entrypoints (the CLI) at
  startup; pass ``force=True`` to swap the handler (tests, reconfiguration).
- ``get_logger(name)``: acquire a logger by name, making sure the package root
  logger has a ``NullHandler`` while nothing is configured.
- ``batch_logger(logger, batch_id)``: wrap a logger so every record emitted
  during one import run carries the batch id.

Library modules never attach handlers themselves; they call
``get_logger("ledger_import.<module>")`` and rely on the host application.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import MutableMapping
from typing import IO, Any

_PKG_LOGGER_NAME = "ledger_import"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_handler: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        level = os.getenv("LEDGER_IMPORT_LOG_LEVEL") or "INFO"
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    # getLevelName returns "Level X" for unknown names
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    force: bool = False,
) -> None:
    """Configure the package root logger.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level-name string. When ``None`` the
        ``LEDGER_IMPORT_LOG_LEVEL`` environment variable is used, else INFO.
    fmt:
        Optional format string (defaults to ``_DEFAULT_FORMAT``).
    stream:
        Output stream of the single ``StreamHandler``.
    force:
        Replace an existing configuration instead of keeping the first one.
    """

    global _handler
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None:
        if not force:
            return
        logger.removeHandler(_handler)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False
    _handler = handler


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name with library-safe defaults."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


class _BatchAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[batch {self.extra['batch_id']}] {msg}", kwargs


def batch_logger(logger: logging.Logger, batch_id: str) -> logging.LoggerAdapter:
    """Prefix every message with the import batch id."""

    return _BatchAdapter(logger, {"batch_id": batch_id})


__all__ = ["configure_logging", "get_logger", "batch_logger"]
