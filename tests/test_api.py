"""Tests for the REST layer."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from tests._support.factories import CLAN_ID, FakeAttendance, FakeChat, add_ping, local, make_member
from wfh_pulse.api import create_app
from wfh_pulse.config import Settings
from wfh_pulse.db import Database
from wfh_pulse.models import PingState, PunishmentRecord
from wfh_pulse.service import EngagementService

HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        chat_api_token="token",
        clan_id=CLAN_ID,
        supervisor_channel_id="chan-sup",
        api_key="test-key",
        database_path=tmp_path / "api.db",
        scheduler_enabled=False,
    )


@pytest.fixture
def service(settings):
    return EngagementService(
        settings, Database(settings.database_path), FakeChat(), FakeAttendance()
    )


@pytest.fixture
def client(settings, service):
    return TestClient(create_app(settings, service))


def test_healthz_needs_no_key(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_api_key_is_enforced(client):
    assert client.get("/api/members/awaiting").status_code == 422
    assert client.get("/api/members/awaiting", headers={"X-API-Key": "wrong"}).status_code == 401


def test_awaiting_members_and_activity(client, service):
    service.database.upsert_member(make_member("alice"))
    now = service.clock.now()
    add_ping(service.database, "alice", "p1", now - timedelta(minutes=5))

    awaiting = client.get("/api/members/awaiting", headers=HEADERS).json()["members"]
    assert [m["id"] for m in awaiting] == ["alice"]
    assert awaiting[0]["awaiting_response"] is True

    response = client.post(
        "/api/activity", headers=HEADERS, json={"member_id": "alice", "message_id": "in-7"}
    )
    assert response.status_code == 202
    assert response.json() == {"member_id": "alice", "updated": True}
    assert service.database.get_member("alice").ping_state is PingState.NONE
    assert client.get("/api/members/awaiting", headers=HEADERS).json()["members"] == []


def test_member_lookup(client, service):
    service.database.upsert_member(make_member("bob"))
    assert client.get("/api/members/bob", headers=HEADERS).json()["member"]["username"] == "bob"
    assert client.get("/api/members/nobody", headers=HEADERS).status_code == 404


def test_punishments_by_date(client, service):
    service.database.upsert_member(make_member("carol"))
    now = service.clock.now()
    service.database.insert_punishment_record(
        PunishmentRecord(member_id="carol", message="@Carol did not answer", created_at=now)
    )
    today = service.clock.local_date(now).isoformat()

    body = client.get("/api/punishments", params={"date_param": today}, headers=HEADERS).json()
    assert body["date"] == today
    assert [p["member_id"] for p in body["punishments"]] == ["carol"]

    bad = client.get("/api/punishments", params={"date_param": "19/10/2026"}, headers=HEADERS)
    assert bad.status_code == 400


def test_unknown_tick_kind_is_rejected(client):
    assert client.post("/api/ticks/lunch-ping", headers=HEADERS).status_code == 400
    assert client.get("/api/eligibility/punish-check", headers=HEADERS).status_code == 400


def test_eligibility_preview(client, service):
    service.database.upsert_member(make_member("bob"))
    body = client.get("/api/eligibility/broad-quiz-ping", headers=HEADERS).json()
    assert body["kind"] == "broad-quiz-ping"
    assert body["members"] == [{"member_id": "bob", "username": "bob", "rejected_by": None}]


def test_schedules_are_listed_when_scheduler_is_off(client):
    schedules = client.get("/api/schedules", headers=HEADERS).json()["schedules"]
    assert {s["id"] for s in schedules} == {"reminder-ping", "punish-check", "broad-quiz-ping"}


def test_activity_without_offset_is_local_time(client, service):
    service.database.upsert_member(make_member("alice"))

    response = client.post(
        "/api/activity",
        headers=HEADERS,
        json={"member_id": "alice", "message_id": "in-8", "created_at": "2026-10-19T09:00:00"},
    )

    assert response.status_code == 202
    assert service.database.get_member("alice").last_message_time == local(2026, 10, 19, 9, 0)
