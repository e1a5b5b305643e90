"""Console and file logging for applications hosting leafline.

Library modules only call ``logging.getLogger(__name__)``.  An application
that wants leafline's diagnostics rendered calls :func:`setup_logging` once at
startup; calling it again replaces the handlers it installed before.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from leafline.config import LeaflineConfig

LOGGER_NAME = "leafline"
FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _console_handler(console: Console | None) -> logging.Handler:
    return RichHandler(
        console=console or Console(stderr=True),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )


def _file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Route the ``leafline`` logger tree to Rich (and optionally a file).

    Parameters
    ----------
    level:
        Level name, case-insensitive.  Unknown names mean ``INFO``.
    log_file:
        When given, records are also appended to this file with timestamps.
        Missing parent directories are created.
    console:
        Rich console to render to; stderr by default.

    Returns
    -------
    logging.Logger
        The ``leafline`` logger.
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(resolved)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    handlers = [_console_handler(console)]
    if log_file is not None:
        handlers.append(_file_handler(Path(log_file)))
    for handler in handlers:
        handler.setLevel(resolved)
        root.addHandler(handler)

    return root


def setup_logging_from_config(config: LeaflineConfig, *, console: Console | None = None) -> logging.Logger:
    return setup_logging(config.log_level, config.log_file, console=console)
