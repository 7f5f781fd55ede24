"""
Logging bootstrap for the market core.

Usage:
    from market_core.config import get_settings
    from market_core.logging import configure_logging

    configure_logging(get_settings())  # idempotent

- Supports JSON and plain formats
- Supports stdout/stderr/file destinations
- Applies the configured level to the root logger and to SQLAlchemy/Alembic
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

_configured = False

# Libraries that log verbosely at DEBUG; kept at INFO or above
_NOISY_LIBS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic", "asyncio")


def _level_from_str(level: str) -> int:
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _make_handler(destination: str, filename: Optional[str]) -> logging.Handler:
    if destination == "stdout":
        return logging.StreamHandler(stream=sys.stdout)
    if destination == "stderr":
        return logging.StreamHandler(stream=sys.stderr)
    path = Path(filename or "market.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def _make_formatter(json_enabled: bool, fmt: str) -> logging.Formatter:
    if json_enabled:
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(process)d %(threadName)s"
        )
    return logging.Formatter(fmt)


def configure_logging(settings=None, *, force: bool = False) -> None:
    """
    Configure root logging from settings.logging. Safe to call multiple times.

    Params:
      - settings: market_core.config.Settings (loaded via get_settings() if None)
      - force: reconfigure even if logging was already set up
    """
    global _configured

    if _configured and not force:
        return

    if settings is None:
        from market_core.config import get_settings  # lazy import to avoid cycles

        settings = get_settings()

    cfg = settings.logging
    lvl = _level_from_str(cfg.level)
    handler = _make_handler(cfg.destination, cfg.filename)
    handler.setFormatter(_make_formatter(cfg.json_format, cfg.format))

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(lvl)
    root.addHandler(handler)

    for name in _NOISY_LIBS:
        logging.getLogger(name).setLevel(max(lvl, logging.INFO))

    _configured = True
