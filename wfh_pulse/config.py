"""Configuration helpers for WFH Pulse."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    chat_api_token: str
    clan_id: str
    supervisor_channel_id: str
    api_key: str
    database_path: Path
    chat_api_base: str = "https://api.mezon.ai/v2"
    timesheet_api_base: str = "https://timesheetapi.example.com/api/services/app/Public"
    timesheet_api_key: Optional[str] = None
    timezone: str = "Asia/Ho_Chi_Minh"
    monitored_user_type: str = "MEZON"
    response_window_minutes: int = 30
    reminder_freshness_minutes: int = 30
    quiz_freshness_minutes: int = 1
    dispatch_delay_ms: int = 200
    workday_start: time = time(8, 0)
    workday_end: time = time(18, 0)
    valid_minute_bands: str = "08:30-12:00,13:00-17:30"
    holidays: frozenset[date] = field(default_factory=frozenset)
    scheduler_enabled: bool = True


def _parse_clock(value: str) -> time:
    hours, _, minutes = value.strip().partition(":")
    return time(int(hours), int(minutes or 0))


def _parse_holidays(value: str | None) -> frozenset[date]:
    if not value:
        return frozenset()
    return frozenset(
        date.fromisoformat(item.strip()) for item in value.split(",") if item.strip()
    )


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    db_path = Path(os.getenv("DATABASE_PATH", "wfh_pulse.db")).expanduser()

    chat_token = os.getenv("CHAT_API_TOKEN")
    clan_id = os.getenv("CLAN_ID")
    supervisor_channel_id = os.getenv("SUPERVISOR_CHANNEL_ID")
    api_key = os.getenv("API_KEY")

    if not chat_token:
        raise RuntimeError("CHAT_API_TOKEN must be configured")
    if not clan_id:
        raise RuntimeError("CLAN_ID must be configured")
    if not supervisor_channel_id:
        raise RuntimeError("SUPERVISOR_CHANNEL_ID must be configured")
    if not api_key:
        raise RuntimeError("API_KEY must be configured")

    defaults = Settings(
        chat_api_token=chat_token,
        clan_id=clan_id,
        supervisor_channel_id=supervisor_channel_id,
        api_key=api_key,
        database_path=db_path,
    )

    return Settings(
        chat_api_token=chat_token,
        clan_id=clan_id,
        supervisor_channel_id=supervisor_channel_id,
        api_key=api_key,
        database_path=db_path,
        chat_api_base=os.getenv("CHAT_API_BASE", defaults.chat_api_base),
        timesheet_api_base=os.getenv("TIMESHEET_API_BASE", defaults.timesheet_api_base),
        timesheet_api_key=os.getenv("TIMESHEET_API_KEY"),
        timezone=os.getenv("TIMEZONE", defaults.timezone),
        monitored_user_type=os.getenv("MONITORED_USER_TYPE", defaults.monitored_user_type),
        response_window_minutes=int(
            os.getenv("RESPONSE_WINDOW_MINUTES", str(defaults.response_window_minutes))
        ),
        reminder_freshness_minutes=int(
            os.getenv("REMINDER_FRESHNESS_MINUTES", str(defaults.reminder_freshness_minutes))
        ),
        quiz_freshness_minutes=int(
            os.getenv("QUIZ_FRESHNESS_MINUTES", str(defaults.quiz_freshness_minutes))
        ),
        dispatch_delay_ms=int(os.getenv("DISPATCH_DELAY_MS", str(defaults.dispatch_delay_ms))),
        workday_start=_parse_clock(os.getenv("WORKDAY_START", "08:00")),
        workday_end=_parse_clock(os.getenv("WORKDAY_END", "18:00")),
        valid_minute_bands=os.getenv("VALID_MINUTE_BANDS", defaults.valid_minute_bands),
        holidays=_parse_holidays(os.getenv("HOLIDAYS")),
        scheduler_enabled=_env_flag("SCHEDULER_ENABLED", True),
    )


__all__ = ["Settings", "load_settings"]
