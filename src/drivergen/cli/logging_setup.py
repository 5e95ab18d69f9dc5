"""Logging for drivergen CLI runs.

Pipeline progress is logged under the ``drivergen`` logger tree to a Rich
console handler and, when configured, to a plain log file. The LLM and
embedding libraries log every request at INFO; they are held at WARNING
unless the run is at DEBUG.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "drivergen"

# Third-party loggers that chatter per request.
NOISY_LOGGERS = ("LiteLLM", "httpx", "httpcore", "sentence_transformers", "huggingface_hub")

FILE_FORMAT = "%(asctime)s | %(component)s | %(levelname)s | %(message)s"


class _ComponentFilter(logging.Filter):
    """Adds ``component``: the logger name without the package prefix."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(PACKAGE_LOGGER + "."):
            name = name[len(PACKAGE_LOGGER) + 1 :]
        record.component = name
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``drivergen`` logger for one CLI run.

    An unknown *level* name falls back to INFO with a warning. Calling this
    again replaces the handlers of the previous call.
    """
    numeric_level = logging.getLevelName(level.upper())
    unknown = not isinstance(numeric_level, int)
    if unknown:
        numeric_level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=False,
            markup=False,
        )
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.addFilter(_ComponentFilter())
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    library_level = logging.NOTSET if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    if unknown:
        logger.warning("Unknown log level %r, using INFO", level)
    return logger
