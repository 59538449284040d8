"""Composable member filters.

A :class:`Criteria` is an ordered conjunction of named :class:`Filter`
objects. Keeping the names around lets callers report *which* rule rejected a
member, which is what the eligibility dry-run endpoint shows to operators.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .models import Member

MemberPredicate = Callable[[Member], bool]


@dataclass(slots=True, frozen=True)
class Filter:
    name: str
    predicate: MemberPredicate

    def __call__(self, member: Member) -> bool:
        return bool(self.predicate(member))


@dataclass(slots=True, frozen=True)
class Criteria:
    filters: tuple[Filter, ...] = ()

    def where(self, *filters: Filter) -> "Criteria":
        return Criteria(self.filters + filters)

    def matches(self, member: Member) -> bool:
        return all(f(member) for f in self.filters)

    def first_failure(self, member: Member) -> Optional[str]:
        for f in self.filters:
            if not f(member):
                return f.name
        return None

    def apply(self, members: Iterable[Member]) -> list[Member]:
        return [member for member in members if self.matches(member)]

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.filters]


def field_equals(field: str, value: Any, *, name: str | None = None) -> Filter:
    return Filter(name or f"{field}=={value!r}", lambda m: getattr(m, field) == value)


def field_in(field: str, values: Collection[Any], *, name: str | None = None) -> Filter:
    allowed = frozenset(values)
    return Filter(name or f"{field} in set", lambda m: getattr(m, field) in allowed)


def field_not_in(field: str, values: Collection[Any], *, name: str | None = None) -> Filter:
    blocked = frozenset(values)
    return Filter(name or f"{field} not in set", lambda m: getattr(m, field) not in blocked)


def is_not_null(field: str, *, name: str | None = None) -> Filter:
    return Filter(name or f"{field} is not null", lambda m: getattr(m, field) is not None)


def null_or_at_most(field: str, cutoff: datetime, *, name: str | None = None) -> Filter:
    """Timestamp field is unset or not later than ``cutoff``."""

    def predicate(member: Member) -> bool:
        value = getattr(member, field)
        return value is None or value <= cutoff

    return Filter(name or f"{field} <= {cutoff.isoformat()}", predicate)


def ping_null_or_at_most(cutoff: datetime, *, name: str = "ping is stale") -> Filter:
    """Join filter on the member's latest ping record."""

    def predicate(member: Member) -> bool:
        ping = member.latest_ping
        return ping is None or ping.created_at <= cutoff

    return Filter(name, predicate)


def ping_created_between(
    lower: datetime, upper: datetime, *, name: str = "ping in escalation window"
) -> Filter:
    """Latest ping exists and ``lower < created_at <= upper``."""

    def predicate(member: Member) -> bool:
        ping = member.latest_ping
        return ping is not None and lower < ping.created_at <= upper

    return Filter(name, predicate)


def email_in(emails: Collection[str], *, name: str = "email in set") -> Filter:
    wanted = frozenset(e.lower() for e in emails)
    return Filter(name, lambda m: m.email is not None and m.email.lower() in wanted)


def email_not_in(emails: Collection[str], *, name: str = "email not in set") -> Filter:
    blocked = frozenset(e.lower() for e in emails)
    return Filter(name, lambda m: m.email is None or m.email.lower() not in blocked)


__all__ = [
    "Filter",
    "Criteria",
    "MemberPredicate",
    "field_equals",
    "field_in",
    "field_not_in",
    "is_not_null",
    "null_or_at_most",
    "ping_null_or_at_most",
    "ping_created_between",
    "email_in",
    "email_not_in",
]
