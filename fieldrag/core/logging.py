"""Logging bootstrap shared by the API and CLI entrypoints."""

from __future__ import annotations

import logging

from fieldrag.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once; later calls only adjust the level."""

    resolved = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
    root.setLevel(resolved)


__all__ = ["configure_logging", "LOG_FORMAT"]
