# Overview: Application logging setup (level, format) driven by config.

from __future__ import annotations

import logging
from typing import Iterable

from flask import Flask

DEV_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
PROD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(app: Flask) -> None:
    level = _coerce_level(app.config.get("LOG_LEVEL", "DEBUG" if app.debug else "INFO"))
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)
    logging.getLogger("stockledger").setLevel(level)

    if level > logging.DEBUG:
        for noisy in ("werkzeug", "sqlalchemy.engine", "alembic"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    is_production = not app.debug and not app.testing
    formatter = logging.Formatter(PROD_FORMAT if is_production else DEV_FORMAT)
    _apply_formatter(logging.getLogger().handlers, formatter)
    _apply_formatter(app.logger.handlers, formatter)


def _apply_formatter(handlers: Iterable[logging.Handler], formatter: logging.Formatter) -> None:
    for handler in handlers:
        handler.setFormatter(formatter)


def _coerce_level(raw_level) -> int:
    if isinstance(raw_level, int):
        return raw_level
    if isinstance(raw_level, str):
        candidate = raw_level.strip().upper()
        level = getattr(logging, candidate, logging.INFO)
        if isinstance(level, int):
            return level
    return logging.INFO
