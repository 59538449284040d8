"""Tests for the zone-aware clock and time bands."""

from datetime import date, time, timedelta, timezone

import pytest

from tests._support.factories import local
from wfh_pulse.clock import TimeBand, from_timestamp, parse_bands, to_timestamp, within_bands
from wfh_pulse.models import DayPart


def test_day_part_uses_configured_zone(clock):
    # 04:59 UTC is 11:59 in Ho Chi Minh City, 05:00 UTC is noon
    assert clock.day_part(local(2026, 10, 19, 11, 59)) is DayPart.MORNING
    assert clock.day_part(local(2026, 10, 19, 12, 0)) is DayPart.AFTERNOON


def test_local_date_crosses_utc_midnight(clock):
    # 06:30 local on the 20th is still the 19th in UTC
    instant = local(2026, 10, 20, 6, 30)
    assert instant.date() == date(2026, 10, 19)
    assert clock.local_date(instant) == date(2026, 10, 20)


def test_day_bounds_and_at(clock):
    start, end = clock.day_bounds(local(2026, 10, 19, 15, 0))
    assert start == local(2026, 10, 19, 0, 0)
    assert end - start == timedelta(days=1)
    assert start.tzinfo == timezone.utc
    assert clock.at(local(2026, 10, 19, 15, 0), time(8, 0)) == local(2026, 10, 19, 8, 0)


def test_format_renders_local_time(clock):
    assert clock.format(local(2026, 10, 19, 9, 25)) == "2026-10-19 09:25:00"


def test_parse_bands():
    bands = parse_bands("08:30-12:00, 13:00-17:30")
    assert bands == (TimeBand(time(8, 30), time(12, 0)), TimeBand(time(13, 0), time(17, 30)))
    assert within_bands(time(8, 30), bands)
    assert not within_bands(time(12, 0), bands)
    assert within_bands(time(17, 29), bands)
    assert not within_bands(time(12, 30), bands)
    assert str(bands[0]) == "08:30-12:00"


@pytest.mark.parametrize("value", ["08:30", "12:00-08:00", "xx-yy"])
def test_parse_bands_rejects_malformed_input(value):
    with pytest.raises(ValueError):
        parse_bands(value)


def test_timestamp_helpers_handle_none():
    assert to_timestamp(None) is None
    assert from_timestamp(None) is None
    instant = local(2026, 10, 19, 9, 0)
    assert from_timestamp(to_timestamp(instant)) == instant
