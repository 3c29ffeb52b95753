"""
Tests for the logging setup and helpers.
"""

import json
import logging
import os

import pytest

from RideChat.core.client.utils.exceptions import StorageError
from RideChat.core.logging import (
    ColoredFormatter,
    JsonFormatter,
    LogConfig,
    auto_configure,
    configure_logging,
    create_testing_config,
    get_logging_manager,
)
from RideChat.core.logging.utils import ExceptionLogger, LogTimer, log_context


@pytest.fixture
def restore_logging():
    yield
    configure_logging(create_testing_config())


def make_record(level=logging.INFO, msg="hello %s", args=("world",)):
    return logging.LogRecord("RideChat.test", level, __file__, 10, msg, args, None)


class TestFormatters:

    def test_json_formatter(self):
        data = json.loads(JsonFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "RideChat.test"
        assert data["message"] == "hello world"

    def test_colored_formatter_restores_level_name(self):
        record = make_record(level=logging.WARNING)
        formatter = ColoredFormatter("%(levelname)s %(message)s", use_colors=True)
        formatter.use_colors = True

        output = formatter.format(record)

        assert "\033[33m" in output
        assert record.levelname == "WARNING"


class TestManager:

    def test_file_output(self, tmp_path, restore_logging):
        configure_logging(LogConfig(level="INFO", log_dir=str(tmp_path),
                                    console_output=False, json_files=True))
        logging.getLogger("RideChat.test").error("disk full")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert sorted(os.listdir(tmp_path)) == ["ridechat.log", "ridechat_errors.log"]
        with open(tmp_path / "ridechat_errors.log", encoding="utf-8") as f:
            assert json.loads(f.readline())["message"] == "disk full"

    def test_set_level_keeps_error_file_threshold(self, tmp_path, restore_logging):
        configure_logging(LogConfig(level="INFO", log_dir=str(tmp_path), console_output=False))
        manager = get_logging_manager()

        manager.set_level("DEBUG")

        levels = sorted(handler.level for handler in logging.getLogger().handlers)
        assert levels == [logging.DEBUG, logging.ERROR]

    def test_component_levels(self, restore_logging):
        configure_logging(LogConfig(file_output=False, component_levels={"websockets": "error"}))
        assert logging.getLogger("websockets").level == logging.ERROR

    @pytest.mark.parametrize("env, expected", [("test", "test"), ("TESTING", "testing")])
    def test_auto_configure(self, env, expected, restore_logging):
        assert auto_configure(env) == expected
        assert get_logging_manager().config.file_output is False


class TestHelpers:

    def test_log_timer_records_duration(self, caplog):
        logger = logging.getLogger("RideChat.test.timer")
        with caplog.at_level(logging.DEBUG, logger="RideChat.test.timer"):
            with LogTimer("load chat_1", logger) as timer:
                pass

        assert timer.duration is not None
        assert "load chat_1" in caplog.text

    def test_log_context_reraises(self, caplog):
        logger = logging.getLogger("RideChat.test.context")
        with pytest.raises(KeyError):
            with log_context("teardown", logger):
                raise KeyError("x")
        assert "Failed: teardown" in caplog.text

    def test_exception_logger_uses_cause(self, caplog):
        logger = logging.getLogger("RideChat.test.errors")
        error = StorageError("write failed")
        error.__cause__ = OSError("disk full")

        ExceptionLogger(logger).log_exception(error, level=logging.WARNING)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.exc_info[0] is OSError
