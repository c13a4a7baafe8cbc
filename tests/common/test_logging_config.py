"""
Tests for logging configuration.
"""

import json
import logging

import pytest

from groomnet.common.logging_config import (
    JSONFormatter,
    LoggingTimer,
    setup_logging,
    get_logger,
    configure_external_library_logging,
    log_performance_metric,
    _resolve_logging_config
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestResolveLoggingConfig:
    """Arguments win over environment, environment over defaults."""

    def test_defaults(self, monkeypatch):
        for var in ("GROOMNET_LOG_LEVEL", "GROOMNET_LOG_FILE", "GROOMNET_LOG_DIR",
                    "GROOMNET_LOG_CONSOLE", "GROOMNET_LOG_JSON", "GROOMNET_LOG_FORMAT"):
            monkeypatch.delenv(var, raising=False)

        config = _resolve_logging_config()

        assert config["level"] == "INFO"
        assert config["log_file"] is None
        assert config["console"] is True
        assert config["json_format"] is False

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GROOMNET_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("GROOMNET_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("GROOMNET_LOG_JSON", "yes")
        monkeypatch.setenv("GROOMNET_LOG_CONSOLE", "off")
        monkeypatch.delenv("GROOMNET_LOG_FILE", raising=False)

        config = _resolve_logging_config()

        assert config["level"] == "DEBUG"
        assert config["log_file"] == str(tmp_path / "groomnet.log")
        assert config["json_format"] is True
        assert config["console"] is False

    def test_arguments_override_environment(self, monkeypatch):
        monkeypatch.setenv("GROOMNET_LOG_LEVEL", "DEBUG")

        config = _resolve_logging_config(level="ERROR", console=True)

        assert config["level"] == "ERROR"
        assert config["console"] is True


class TestSetupLogging:

    def test_file_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logging(level="INFO", log_file=str(log_file), console=False, force_setup=True)

        get_logger("groomnet.network.statistics").info("hello grooming")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "hello grooming" in log_file.read_text(encoding="utf-8")

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid logging level"):
            setup_logging(level="CHATTY", console=False, force_setup=True)

    def test_existing_setup_is_kept(self):
        first = setup_logging(level="INFO", console=True, force_setup=True)
        handlers = list(first.handlers)

        second = setup_logging(level="DEBUG")

        assert second is first
        assert second.handlers == handlers
        assert second.level == logging.INFO

    def test_external_library_levels(self):
        configure_external_library_logging({"networkit": "ERROR"})
        assert logging.getLogger("networkit").level == logging.ERROR


class TestJSONFormatter:

    def test_extra_fields_serialised(self):
        record = logging.LogRecord("groomnet.test", logging.INFO, __file__, 1,
                                   "fitted %d models", (3,), None)
        record.duration = 0.5

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "fitted 3 models"
        assert payload["level"] == "INFO"
        assert payload["duration"] == 0.5


class TestPerformanceLogging:

    def setup_method(self):
        self.handler = ListHandler()
        self.logger = logging.getLogger("groomnet.performance")
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.INFO)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)
        self.logger.setLevel(logging.NOTSET)

    def test_log_performance_metric(self):
        log_performance_metric("diameter", 1.25, {"nodes": 137})

        message = self.handler.records[-1].getMessage()
        assert "diameter completed in 1.250s" in message
        assert "nodes=137" in message

    def test_logging_timer(self):
        with LoggingTimer("fit_sbm", {"max_blocks": 6}) as timer:
            pass

        assert timer.start_time is not None
        assert self.handler.records[-1].operation == "fit_sbm"
        assert self.handler.records[-1].duration >= 0.0
