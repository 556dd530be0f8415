"""
Logging setup tests.
"""

import logging

import pytest
from rich.logging import RichHandler

from ram_machine.log_setup import setup_logging


@pytest.fixture
def logger_name():
    name = "ram_machine_test_logging"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestSetupLogging:
    def test_console_handler(self, logger_name):
        logger = setup_logging(logger_name)
        assert [type(h) for h in logger.handlers] == [RichHandler]
        assert logger.handlers[0].level == logging.WARNING
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_verbose_console(self, logger_name):
        logger = setup_logging(logger_name, console_level=logging.DEBUG)
        assert logger.handlers[0].level == logging.DEBUG

    def test_repeated_setup_replaces_handlers(self, logger_name):
        setup_logging(logger_name)
        logger = setup_logging(logger_name)
        assert len(logger.handlers) == 1

    def test_log_file(self, logger_name, tmp_path):
        path = tmp_path / "logs" / "run.log"
        logger = setup_logging(logger_name, log_file=path)
        assert len(logger.handlers) == 2
        logger.getChild("machine").debug("pointer=%d", 7)
        for handler in logger.handlers:
            handler.flush()
        text = path.read_text(encoding="utf-8")
        assert "| DEBUG   |" in text
        assert f"{logger_name}.machine" in text
        assert "pointer=7" in text
