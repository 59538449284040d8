"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from tests._support.factories import TZ, FakeChat
from wfh_pulse.clock import Clock
from wfh_pulse.db import Database


@pytest.fixture
def clock() -> Clock:
    return Clock(TZ)


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(tmp_path / "pulse.db")


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()
