"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from serverstat.config import AppSettings, ConfigError, Settings, load_settings


class TestLoadSettings:
    def test_valid_file(self, write_settings) -> None:
        settings = load_settings(write_settings())
        assert settings.host == "localhost"
        assert settings.port == 5432
        assert settings.user == "tester"
        assert settings.password == "secret"
        assert settings.httptimeout_ms == 2000
        assert settings.timeout_seconds == 2.0
        assert settings.servers == ["example.com", "https://bad.invalid:9999"]
        assert settings.driver == "sqlite"

    def test_driver_defaults_to_postgres(self, write_settings) -> None:
        settings = load_settings(write_settings(driver=None))
        assert settings.driver == "postgres"

    def test_port_as_string(self, write_settings) -> None:
        settings = load_settings(write_settings(port="6543"))
        assert settings.port == 6543

    def test_empty_server_list(self, write_settings) -> None:
        settings = load_settings(write_settings(servers=[]))
        assert settings.servers == []

    @pytest.mark.parametrize(
        "key", ["host", "port", "database", "user", "pass", "httptimeout_ms", "servers"],
    )
    def test_missing_required_key(self, write_settings, key: str) -> None:
        with pytest.raises(ConfigError, match=key):
            load_settings(write_settings(**{key: None}))

    def test_non_integer_timeout(self, write_settings) -> None:
        with pytest.raises(ConfigError):
            load_settings(write_settings(httptimeout_ms="soon"))

    def test_zero_timeout_rejected(self, write_settings) -> None:
        with pytest.raises(ConfigError):
            load_settings(write_settings(httptimeout_ms=0))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read"):
            load_settings(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("host: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Malformed"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_settings_are_frozen(self, write_settings) -> None:
        settings = load_settings(write_settings())
        with pytest.raises(ValidationError):
            settings.host = "elsewhere"


class TestAppSettings:
    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("API_PORT", raising=False)
        monkeypatch.delenv("CYCLE_INTERVAL_MINUTES", raising=False)
        s = AppSettings(_env_file=None)
        assert s.api_port == 8080
        assert s.cycle_interval_minutes == 60
        assert s.refresh_window_minutes == 5
        assert s.run_on_start is False

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("CYCLE_INTERVAL_MINUTES", "15")
        monkeypatch.setenv("STORE_POOL_SIZE", "3")
        s = AppSettings(_env_file=None)
        assert s.cycle_interval_minutes == 15
        assert s.store_pool_size == 3


def test_settings_accept_field_name() -> None:
    s = Settings(
        host="h", port=1, database="d", user="u", password="p",
        httptimeout_ms=10, servers=["a"],
    )
    assert s.password == "p"
