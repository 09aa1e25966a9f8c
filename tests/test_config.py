"""
Unit tests for configuration and structured logging.
"""
import json
import logging
import uuid

import colorlog
import pytest

from core.config import DEFAULT_COLUMN_ALIASES, ImportConfig, get_config, reset_config
from core.logger import (
    clear_request_context,
    get_correlation_id,
    get_request_context,
    log_json,
    set_request_context,
    setup_colored_logging,
)


class TestImportConfig:
    """pydantic-settings configuration."""

    def test_defaults(self, config):
        assert config.max_file_size_bytes == 50 * 1024 * 1024
        assert config.max_file_size_mb == 50
        assert config.header_scan_rows == 10
        assert config.fuzzy_match_threshold == 0.6
        assert config.suggestion_threshold == 0.3
        assert config.json_array_index_header is False
        assert config.column_aliases == DEFAULT_COLUMN_ALIASES
        assert 'sku' in config.header_keywords

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("IMPORT_HEADER_SCAN_ROWS", "5")
        monkeypatch.setenv("IMPORT_FUZZY_MATCH_THRESHOLD", "0.8")
        monkeypatch.setenv("IMPORT_JSON_ARRAY_INDEX_HEADER", "true")
        config = ImportConfig(_env_file=None)

        assert config.header_scan_rows == 5
        assert config.fuzzy_match_threshold == 0.8
        assert config.json_array_index_header is True

    def test_keywords_lowercased(self):
        config = ImportConfig(_env_file=None, header_keywords=["SKU", " Bin ", " "])
        assert config.header_keywords == ["sku", "bin"]

    def test_threshold_bounds(self):
        with pytest.raises(ValueError):
            ImportConfig(_env_file=None, fuzzy_match_threshold=1.5)

    def test_singleton(self):
        assert get_config() is get_config()

    def test_reset(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("IMPORT_HEADER_SCAN_ROWS", "3")
        reset_config()
        second = get_config()

        assert second is not first
        assert second.header_scan_rows == 3


class TestRequestContext:
    """Correlation ID context."""

    def test_generated_correlation_id(self):
        correlation_id = set_request_context(file_name="stock.csv")

        uuid.UUID(correlation_id)
        assert get_correlation_id() == correlation_id
        assert get_request_context()["file_name"] == "stock.csv"

    def test_explicit_correlation_id(self):
        assert set_request_context(correlation_id="abc") == "abc"

    def test_none_fields_dropped(self):
        set_request_context(correlation_id="abc", file_name=None)
        assert get_request_context() == {"correlation_id": "abc"}

    def test_clear(self):
        set_request_context(correlation_id="abc")
        clear_request_context()
        assert get_correlation_id() is None


class TestLogJson:
    """JSON-line events."""

    def test_event_fields(self, caplog):
        caplog.set_level(logging.INFO, logger="core.logger")
        set_request_context(correlation_id="abc", file_name="stock.csv")

        log_json(level='info', message="done", stage='sanitize', rows_total=3, warning_count=0, custom="x")

        event = json.loads(caplog.records[-1].getMessage())
        assert event["message"] == "done"
        assert event["level"] == "INFO"
        assert event["correlation_id"] == "abc"
        assert event["file_name"] == "stock.csv"
        assert event["stage"] == "sanitize"
        assert event["rows_total"] == 3
        assert event["warning_count"] == 0
        assert event["custom"] == "x"
        assert "decision" not in event

    def test_level_mapping(self, caplog):
        caplog.set_level(logging.DEBUG, logger="core.logger")
        log_json(level='error', message="failed")
        assert caplog.records[-1].levelno == logging.ERROR


class TestColoredLogging:
    """colorlog console setup."""

    def test_setup(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            logger = setup_colored_logging("importer", "DEBUG")

            assert logger is root
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, colorlog.ColoredFormatter)
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
