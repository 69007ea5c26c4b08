#!/usr/bin/env python3

import io
import logging

import pytest

from odm_schema_to_ts.errors import ErrorCode, TypeGenError, format_error
from odm_schema_to_ts.logging_config import ENV_LOG_LEVEL, LOGGER_NAME, configure_logging, resolve_level


class TestTypeGenError:
    """Test error codes and formatting"""

    def test_identity(self):
        error = TypeGenError(ErrorCode.NO_MODELS_FOUND, {"models_path": "./models"})
        assert error.error_id == "E1002"
        assert str(error) == "[E1002] No models found"
        assert error.message == "No models found"
        assert error.suggestions

    def test_no_input_codes(self):
        assert TypeGenError(ErrorCode.NO_MODELS_FOUND).is_no_input
        assert TypeGenError(ErrorCode.UNSUPPORTED_SOURCE).is_no_input
        assert not TypeGenError(ErrorCode.FILE_WRITE_FAILED).is_no_input
        assert not TypeGenError(ErrorCode.CONFIG_INVALID).is_no_input

    def test_to_dict(self):
        d = TypeGenError(ErrorCode.CONFIG_INVALID, {"reason": "bad", "line": 3}).to_dict()
        assert d["error_id"] == "E1003"
        assert d["code"] == 1003
        assert d["details"] == {"reason": "bad", "line": "3"}

    def test_format_error(self):
        text = format_error(TypeGenError(ErrorCode.SCHEMA_PARSE_FAILED, {"file": "models/user.py"}))
        assert "Error (E1005): Schema parsing failed" in text
        assert "Suggestions:" in text
        assert "  file: models/user.py" in text
        assert "Caused by" not in text

    def test_format_error_verbose_shows_cause(self):
        try:
            raise KeyError("missing")
        except KeyError as e:
            error = TypeGenError(ErrorCode.SCHEMA_PARSE_FAILED, cause=e)

        assert "KeyError" in format_error(error, verbose=True)
        assert "KeyError" not in format_error(error)

    def test_format_plain_exception(self):
        assert "Error: boom" in format_error(RuntimeError("boom"))


class TestConfigureLogging:
    """Test logging level resolution"""

    @pytest.fixture(autouse=True)
    def reset(self, monkeypatch):
        monkeypatch.delenv(ENV_LOG_LEVEL, raising=False)
        yield
        package_logger = logging.getLogger(LOGGER_NAME)
        package_logger.handlers.clear()
        package_logger.setLevel(logging.NOTSET)

    def test_level_priority(self, monkeypatch):
        assert resolve_level() == logging.WARNING
        assert resolve_level(debug=True) == logging.DEBUG
        assert resolve_level(default=logging.INFO) == logging.INFO

        monkeypatch.setenv(ENV_LOG_LEVEL, "error")
        assert resolve_level(debug=True) == logging.ERROR
        assert resolve_level(level="INFO") == logging.INFO

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            resolve_level(level="LOUD")

    def test_unknown_env_level_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv(ENV_LOG_LEVEL, "chatty")
        with caplog.at_level(logging.WARNING, logger=LOGGER_NAME):
            assert resolve_level(default=logging.INFO) == logging.INFO
            assert resolve_level(debug=True) == logging.DEBUG
        assert f"Ignoring {ENV_LOG_LEVEL}='chatty'" in caplog.text

    def test_configure_is_idempotent(self):
        stream = io.StringIO()
        configure_logging(stream=stream)
        configure_logging(debug=True, stream=stream)

        package_logger = logging.getLogger(LOGGER_NAME)
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG

        logging.getLogger(f"{LOGGER_NAME}.pipeline").debug("hello")
        assert "hello" in stream.getvalue()


if __name__ == "__main__":
    pytest.main([__file__])
