"""Tests for settings loading."""

from pathlib import Path

import pytest

from fundlink.config import DEFAULT_SHEET_ID, DEFAULT_TIMEOUT, Settings, load_settings
from fundlink.errors import ConfigError

ENV_VARS = ("FUNDLINK_SHEET_ID", "FUNDLINK_SHEET_NAME", "FUNDLINK_DATA_DIR",
            "FUNDLINK_HTTP_TIMEOUT")


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so anything load_dotenv writes is undone afterwards
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestSettings:
    def test_sheets_url(self):
        settings = Settings(sheet_id="abc", sheet_name="Offerings")
        assert settings.sheets_url == (
            "https://docs.google.com/spreadsheets/d/abc/gviz/tq?tqx=out:json&sheet=Offerings"
        )

    def test_storage_dirs(self):
        settings = Settings(data_dir=Path("/tmp/fl"))
        assert settings.durable_dir == Path("/tmp/fl/local")
        assert settings.session_dir == Path("/tmp/fl/session")


class TestLoadSettings:
    def test_defaults(self, clean_env, tmp_path):
        settings = load_settings(tmp_path / "missing.env")
        assert settings.sheet_id == DEFAULT_SHEET_ID
        assert settings.timeout == DEFAULT_TIMEOUT

    def test_environment(self, clean_env, tmp_path):
        clean_env.setenv("FUNDLINK_SHEET_ID", "sheet123")
        clean_env.setenv("FUNDLINK_DATA_DIR", str(tmp_path))
        clean_env.setenv("FUNDLINK_HTTP_TIMEOUT", "2.5")
        settings = load_settings(tmp_path / "missing.env")
        assert settings.sheet_id == "sheet123"
        assert settings.data_dir == tmp_path
        assert settings.timeout == 2.5

    def test_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("FUNDLINK_SHEET_NAME=Offerings\n")
        assert load_settings(env_file).sheet_name == "Offerings"

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_bad_timeout(self, clean_env, tmp_path, value):
        clean_env.setenv("FUNDLINK_HTTP_TIMEOUT", value)
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "missing.env")
