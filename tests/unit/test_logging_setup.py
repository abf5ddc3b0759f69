"""Unit tests for dotrun.logging_setup."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from dotrun.logging_setup import setup_logging


class TestSetupLogging:
    """Tests for the setup_logging function."""

    def teardown_method(self) -> None:
        """Restore the dotrun logger after each test."""
        logger = logging.getLogger("dotrun")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)

    def test_returns_logger(self) -> None:
        logger = setup_logging()
        assert isinstance(logger, logging.Logger)
        assert logger.name == "dotrun"

    def test_default_level_is_info(self) -> None:
        assert setup_logging().level == logging.INFO

    def test_case_insensitive_level(self) -> None:
        assert setup_logging(level="debug").level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self) -> None:
        assert setup_logging(level="chatty").level == logging.INFO

    def test_has_rich_handler(self) -> None:
        logger = setup_logging()
        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1

    def test_no_file_handler_by_default(self) -> None:
        logger = setup_logging()
        assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    def test_file_handler_creates_parent_dirs(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "nested" / "dotrun.log"
        logger = setup_logging(log_file=log_file)
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert log_file.parent.exists()

    def test_file_handler_writes_messages(self, tmp_path: Path) -> None:
        log_file = tmp_path / "dotrun.log"
        logger = setup_logging(level="WARNING", log_file=log_file)
        logging.getLogger("dotrun.runner").warning("unrecognized action: x")
        for handler in logger.handlers:
            handler.flush()
        content = log_file.read_text()
        assert "dotrun.runner | WARNING | unrecognized action: x" in content

    def test_repeated_calls_do_not_duplicate_handlers(self) -> None:
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_custom_console(self) -> None:
        console = Console(record=True, width=120)
        setup_logging(console=console)
        logging.getLogger("dotrun.graph").info("graph ready")
        assert "graph ready" in console.export_text()
