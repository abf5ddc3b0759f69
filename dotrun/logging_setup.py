"""Logging setup for applications embedding dotrun.

Library modules only call ``logging.getLogger(__name__)``.  Applications
that want readable output call ``setup_logging()`` once; it attaches a Rich
console handler on *stderr* and an optional timestamped file handler to the
``dotrun`` logger.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the ``dotrun`` logger.

    Parameters
    ----------
    level:
        Logging level name (e.g. ``"DEBUG"``, ``"INFO"``), case-insensitive.
    log_file:
        Optional path to a log file.  Parent directories are created.
    console:
        Optional Rich console for the console handler.

    Returns
    -------
    logging.Logger
        The configured ``dotrun`` logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("dotrun")
    logger.setLevel(numeric_level)

    # Remove existing handlers to prevent duplication on repeated calls
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=True,
        show_path=False,
        markup=False,
    )
    rich_handler.setLevel(numeric_level)
    logger.addHandler(rich_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file))
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    return logger
