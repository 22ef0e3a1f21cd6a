from __future__ import annotations

from pathlib import Path

import pytest

import config
from config import Settings, env_bool, load_settings

ENV_VARS = (
    "PRICE_PROVIDER",
    "USE_PRICE_FALLBACK",
    "STEAM_API_MIN_INTERVAL_MS",
    "SKINPORT_API_MIN_INTERVAL_MS",
    "CHECK_INTERVAL_MINUTES",
    "CURRENCY",
    "SKINPORT_API_KEY",
    "SKINPORT_CLIENT_ID",
    "SKINPORT_CLIENT_SECRET",
    "USER_AGENT",
    "DISCORD_WEBHOOK_URL",
    "FALLBACK_EXCHANGE_RATE",
    "DATABASE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()
    assert settings.price_provider == "steam"
    assert settings.use_price_fallback is True
    assert settings.steam_min_interval == 10.0
    assert settings.skinport_min_interval == 37.5
    assert settings.currency == "24"
    assert settings.database == Path("data/trackers.db")
    assert settings.skinport_configured is False


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("PRICE_PROVIDER", " Skinport ")
    monkeypatch.setenv("USE_PRICE_FALLBACK", "false")
    monkeypatch.setenv("STEAM_API_MIN_INTERVAL_MS", "2500")
    monkeypatch.setenv("CHECK_INTERVAL_MINUTES", "0")
    monkeypatch.setenv("SKINPORT_CLIENT_ID", "id")
    monkeypatch.setenv("SKINPORT_CLIENT_SECRET", "secret")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()
    assert settings.price_provider == "skinport"
    assert settings.use_price_fallback is False
    assert settings.steam_min_interval == 2.5
    assert settings.check_interval_minutes == 1
    assert settings.skinport_configured is True
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value,expected", [
    ("true", True),
    ("1", True),
    ("FALSE", False),
    ("off", False),
    ("", True),
])
def test_env_bool(monkeypatch, value, expected):
    monkeypatch.setenv("USE_PRICE_FALLBACK", value)
    assert env_bool("USE_PRICE_FALLBACK", True) is expected


def test_load_settings_reads_dotenv(monkeypatch):
    calls = []

    def fake_load_dotenv(override):
        calls.append(override)
        monkeypatch.setenv("PRICE_PROVIDER", "both")

    monkeypatch.setattr(config, "load_dotenv", fake_load_dotenv)

    assert load_settings().price_provider == "both"
    assert calls == [True]
