"""Unit tests for config loading, time helpers and logging setup."""

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from familycal.core.config_manager import ConfigManager, get_config_value, parse_env_file
from familycal.core.timezone_utils import now_utc, parse_datetime, parse_window_bound
from familycal.logging_config import CorrelationIdFilter, configure_logging, get_logging_status

pytestmark = pytest.mark.unit


class TestConfigManager:
    def test_parse_env_file_skips_comments_and_strips_quotes(self, tmp_path: Path) -> None:
        env = tmp_path / ".env"
        env.write_text('# comment\n\nFAMILYCAL_WEB_PORT="9090"\nnot a pair\nFAMILYCAL_WEB_HOST=\'0.0.0.0\'\n')

        assert parse_env_file(env) == {"FAMILYCAL_WEB_PORT": "9090", "FAMILYCAL_WEB_HOST": "0.0.0.0"}

    def test_load_env_file_does_not_override_environment(self, tmp_path: Path, monkeypatch: Any) -> None:
        env = tmp_path / ".env"
        env.write_text("FAMILYCAL_WEB_PORT=9090\nFAMILYCAL_EVENTS_FILE=events.json\n")
        monkeypatch.setenv("FAMILYCAL_WEB_PORT", "7070")
        # Registered with monkeypatch so the loaded value is removed on teardown
        monkeypatch.setenv("FAMILYCAL_EVENTS_FILE", "placeholder")
        monkeypatch.delenv("FAMILYCAL_EVENTS_FILE")

        loaded = ConfigManager(env).load_env_file()
        cfg = ConfigManager(env).build_config_from_env()

        assert loaded == ["FAMILYCAL_EVENTS_FILE"]
        assert cfg["server_port"] == 7070
        assert cfg["events_file"] == "events.json"

    def test_build_config_when_invalid_int_then_skipped(self, monkeypatch: Any, caplog: Any) -> None:
        monkeypatch.setenv("FAMILYCAL_MAX_RETRIES", "lots")
        monkeypatch.setenv("FAMILYCAL_SUPABASE_URL", "https://example.supabase.co")

        with caplog.at_level(logging.WARNING):
            cfg = ConfigManager(Path("/nonexistent/.env")).build_config_from_env()

        assert "max_retries" not in cfg
        assert cfg["supabase_url"] == "https://example.supabase.co"
        assert "FAMILYCAL_MAX_RETRIES" in caplog.text

    @pytest.mark.parametrize(
        "config",
        [{"server_port": 1}, SimpleNamespace(server_port=1)],
    )
    def test_get_config_value_reads_dicts_and_objects(self, config: Any) -> None:
        assert get_config_value(config, "server_port") == 1
        assert get_config_value(config, "missing", "default") == "default"

    def test_get_config_value_when_none_then_default(self) -> None:
        assert get_config_value(None, "server_port", 8080) == 8080


class TestTimezoneUtils:
    def test_now_utc_honours_test_time(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("FAMILYCAL_TEST_TIME", "2024-03-05T12:00:00")
        assert now_utc() == datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

    def test_parse_datetime_when_garbage_then_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_datetime("next tuesday")

    def test_parse_window_bound_date_or_datetime(self) -> None:
        assert parse_window_bound("2024-01-29") == date(2024, 1, 29)
        assert parse_window_bound("2024-01-29T10:00:00Z") == datetime(2024, 1, 29, 10, tzinfo=timezone.utc)


class TestLoggingConfig:
    @pytest.fixture(autouse=True)
    def restore_levels(self) -> Any:
        root = logging.getLogger()
        saved = (root.level, logging.getLogger("familycal").level, logging.getLogger("httpx").level)
        yield
        root.setLevel(saved[0])
        logging.getLogger("familycal").setLevel(saved[1])
        logging.getLogger("httpx").setLevel(saved[2])

    def test_configure_logging_debug_sets_package_levels(self) -> None:
        configure_logging(debug_mode=True)

        status = get_logging_status()
        assert status["familycal"] == "DEBUG"
        assert status["httpx"] == "WARNING"

    def test_configure_logging_env_debug_overrides(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("FAMILYCAL_DEBUG", "yes")
        configure_logging(debug_mode=False)
        assert get_logging_status()["familycal"] == "DEBUG"

    def test_configure_logging_force_debug_wins(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("FAMILYCAL_DEBUG", "1")
        configure_logging(force_debug=False)
        assert get_logging_status()["familycal"] == "INFO"

    def test_correlation_filter_added_once(self) -> None:
        configure_logging()
        configure_logging()

        for handler in logging.getLogger().handlers:
            assert sum(isinstance(f, CorrelationIdFilter) for f in handler.filters) <= 1

    def test_correlation_filter_outside_request(self) -> None:
        record = logging.LogRecord("familycal", logging.INFO, __file__, 1, "msg", None, None)
        assert CorrelationIdFilter().filter(record) is True
        assert record.request_id == "no-request-id"
