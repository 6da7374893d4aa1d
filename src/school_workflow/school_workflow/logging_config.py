from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Root of this package's logger tree, however the package was imported.
PACKAGE_LOGGER = __name__.rpartition(".")[0]


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach one stream handler to the package logger; safe to call repeatedly."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_school_workflow", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._school_workflow = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
