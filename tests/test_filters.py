"""Tests for composable member filters."""

from datetime import timedelta

from tests._support.factories import MONDAY_MORNING, make_member
from wfh_pulse.filters import (
    Criteria,
    email_in,
    email_not_in,
    field_equals,
    field_in,
    field_not_in,
    is_not_null,
    null_or_at_most,
    ping_created_between,
    ping_null_or_at_most,
)
from wfh_pulse.models import PingRecord


def test_empty_criteria_matches_everyone():
    members = [make_member("alice"), make_member("bob")]
    assert Criteria().apply(members) == members


def test_criteria_is_a_conjunction_and_reports_first_failure():
    criteria = Criteria().where(
        field_equals("user_type", "MEZON", name="monitored type"),
        field_not_in("username", {"bob"}, name="not off work"),
    )
    alice = make_member("alice")
    bob = make_member("bob")
    guest = make_member("guest", user_type="GUEST")

    assert criteria.apply([alice, bob, guest]) == [alice]
    assert criteria.first_failure(alice) is None
    assert criteria.first_failure(bob) == "not off work"
    assert criteria.first_failure(guest) == "monitored type"
    assert criteria.names == ["monitored type", "not off work"]


def test_where_returns_new_criteria():
    base = Criteria().where(field_in("id", {"alice"}))
    extended = base.where(is_not_null("email"))
    assert len(base.filters) == 1
    assert len(extended.filters) == 2


def test_null_or_at_most_accepts_missing_and_old_values():
    cutoff = MONDAY_MORNING - timedelta(minutes=30)
    f = null_or_at_most("last_message_time", cutoff)
    assert f(make_member("a", last_message_time=None))
    assert f(make_member("b", last_message_time=cutoff))
    assert not f(make_member("c", last_message_time=cutoff + timedelta(seconds=1)))


def test_ping_filters_use_the_joined_record():
    cutoff = MONDAY_MORNING - timedelta(minutes=30)
    never = make_member("never")
    stale = make_member(
        "stale", latest_ping=PingRecord("stale", "p1", cutoff - timedelta(minutes=5))
    )
    fresh = make_member(
        "fresh", latest_ping=PingRecord("fresh", "p2", MONDAY_MORNING - timedelta(minutes=5))
    )

    stale_enough = ping_null_or_at_most(cutoff)
    assert [m.id for m in Criteria().where(stale_enough).apply([never, stale, fresh])] == [
        "never",
        "stale",
    ]

    window = ping_created_between(cutoff - timedelta(hours=1), cutoff)
    assert not window(never)
    assert window(stale)
    assert not window(fresh)


def test_ping_created_between_excludes_lower_bound():
    lower = MONDAY_MORNING - timedelta(hours=1)
    at_lower = make_member("edge", latest_ping=PingRecord("edge", "p", lower))
    assert not ping_created_between(lower, MONDAY_MORNING)(at_lower)


def test_email_filters_ignore_case():
    member = make_member("alice", email="Alice@NCC.asia")
    assert email_in({"alice@ncc.asia"})(member)
    assert not email_not_in({"ALICE@ncc.asia"})(member)
    assert not email_in({"alice@ncc.asia"})(make_member("x", email=None))
    assert email_not_in({"alice@ncc.asia"})(make_member("x", email=None))
