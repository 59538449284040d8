"""Time-zone-aware clock and local time band helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from .models import DayPart


@dataclass(slots=True, frozen=True)
class TimeBand:
    """Half-open local time interval ``[start, end)``."""

    start: time
    end: time

    def contains(self, moment: time) -> bool:
        return self.start <= moment < self.end

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


def parse_bands(value: str) -> tuple[TimeBand, ...]:
    """Parse ``"08:30-12:00,13:00-17:30"`` into time bands."""

    bands: list[TimeBand] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        start_raw, sep, end_raw = chunk.partition("-")
        if not sep:
            raise ValueError(f"Invalid time band: {chunk!r}")
        start = time.fromisoformat(start_raw.strip())
        end = time.fromisoformat(end_raw.strip())
        if end <= start:
            raise ValueError(f"Time band must end after it starts: {chunk!r}")
        bands.append(TimeBand(start, end))
    return tuple(bands)


def within_bands(moment: time, bands: Iterable[TimeBand]) -> bool:
    return any(band.contains(moment) for band in bands)


class Clock:
    """Clock bound to one IANA time zone.

    All instants handed around the application are aware UTC datetimes; the
    clock converts them to the configured zone for calendar questions.
    """

    def __init__(self, tz: ZoneInfo | str) -> None:
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.tz)

    def local_date(self, instant: datetime) -> date:
        return self.local(instant).date()

    def day_part(self, instant: datetime) -> DayPart:
        return DayPart.MORNING if self.local(instant).hour < 12 else DayPart.AFTERNOON

    def at(self, instant: datetime, moment: time) -> datetime:
        """Return ``moment`` on the local day of ``instant``, as UTC."""

        local_day = self.local_date(instant)
        return datetime.combine(local_day, moment, tzinfo=self.tz).astimezone(timezone.utc)

    def day_bounds(self, instant: datetime) -> tuple[datetime, datetime]:
        start = self.at(instant, time.min)
        local_day = self.local_date(instant)
        end = datetime.combine(
            local_day + timedelta(days=1), time.min, tzinfo=self.tz
        ).astimezone(timezone.utc)
        return start, end

    def format(self, instant: datetime, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        return self.local(instant).strftime(fmt)


def to_timestamp(value: Optional[datetime]) -> Optional[float]:
    return value.timestamp() if value is not None else None


def from_timestamp(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


__all__ = [
    "Clock",
    "TimeBand",
    "parse_bands",
    "within_bands",
    "to_timestamp",
    "from_timestamp",
]
