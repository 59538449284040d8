"""Tests for environment-driven settings."""

from datetime import date, time

import pytest

from wfh_pulse.config import load_settings

REQUIRED = {
    "CHAT_API_TOKEN": "token",
    "CLAN_ID": "clan-1",
    "SUPERVISOR_CHANNEL_ID": "chan-sup",
    "API_KEY": "key",
}
OPTIONAL = [
    "DATABASE_PATH",
    "TIMEZONE",
    "WORKDAY_START",
    "WORKDAY_END",
    "HOLIDAYS",
    "SCHEDULER_ENABLED",
    "DISPATCH_DELAY_MS",
]


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    # an empty file keeps a developer's .env out of the test
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return str(env_file)


def test_defaults(env):
    settings = load_settings(env)
    assert settings.clan_id == "clan-1"
    assert settings.timezone == "Asia/Ho_Chi_Minh"
    assert settings.workday_start == time(8, 0)
    assert settings.dispatch_delay_ms == 200
    assert settings.holidays == frozenset()
    assert settings.scheduler_enabled is True


def test_overrides(env, monkeypatch):
    monkeypatch.setenv("WORKDAY_END", "17:30")
    monkeypatch.setenv("HOLIDAYS", "2026-09-02, 2026-01-01")
    monkeypatch.setenv("SCHEDULER_ENABLED", "off")
    settings = load_settings(env)
    assert settings.workday_end == time(17, 30)
    assert settings.holidays == {date(2026, 9, 2), date(2026, 1, 1)}
    assert settings.scheduler_enabled is False


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_required_values(env, monkeypatch, missing):
    monkeypatch.delenv(missing)
    with pytest.raises(RuntimeError, match=missing):
        load_settings(env)
