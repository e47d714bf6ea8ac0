from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from timeboxd_mcp.config import TimeboxdSettings, get_settings


def _clear_env(monkeypatch) -> None:
    for name in (
        "TIMEBOXD_DATABASE_PATH",
        "TIMEBOXD_LOG_LEVEL",
        "TIMEBOXD_IDLE_AUTO_STOP_ENABLED",
        "TIMEBOXD_IDLE_TIMEOUT_MINUTES",
        "TIMEBOXD_LOCAL_TIMEZONE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    settings = TimeboxdSettings()
    assert settings.database_path == Path("./storage/timeboxd.db")
    assert settings.log_level == "INFO"
    assert settings.idle_auto_stop_enabled is True
    assert settings.idle_timeout_minutes == 5
    assert settings.tzinfo() is None


def test_environment_overrides(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TIMEBOXD_DATABASE_PATH", str(tmp_path / "db" / "t.db"))
    monkeypatch.setenv("TIMEBOXD_LOG_LEVEL", " debug ")
    monkeypatch.setenv("TIMEBOXD_IDLE_AUTO_STOP_ENABLED", "false")
    monkeypatch.setenv("TIMEBOXD_IDLE_TIMEOUT_MINUTES", "12")
    monkeypatch.setenv("TIMEBOXD_LOCAL_TIMEZONE", "Europe/Berlin")

    settings = TimeboxdSettings()

    assert settings.database_path == tmp_path / "db" / "t.db"
    assert settings.log_level == "DEBUG"
    assert settings.idle_auto_stop_enabled is False
    assert settings.idle_timeout_minutes == 12
    assert settings.tzinfo() == ZoneInfo("Europe/Berlin")


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("TIMEBOXD_LOG_LEVEL", "chatty"),
        ("TIMEBOXD_IDLE_TIMEOUT_MINUTES", "0"),
        ("TIMEBOXD_LOCAL_TIMEZONE", "Mars/Olympus_Mons"),
    ],
)
def test_invalid_values_rejected(monkeypatch, tmp_path, name, value):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        TimeboxdSettings()


def test_get_settings_resolves_database_path(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TIMEBOXD_DATABASE_PATH", "relative/timeboxd.db")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.database_path.is_absolute()
        assert settings.database_path == (tmp_path / "relative" / "timeboxd.db").resolve()
        assert get_settings() is settings
    finally:
        get_settings.cache_clear()
