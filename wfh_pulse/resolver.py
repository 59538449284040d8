"""Eligibility resolution: who gets pinged on a given tick."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .chat_client import ChatApiError
from .clock import Clock
from .db import Database
from .filters import (
    Criteria,
    email_in,
    email_not_in,
    field_equals,
    field_in,
    field_not_in,
    is_not_null,
    null_or_at_most,
    ping_null_or_at_most,
)
from .models import DayPart, Member, OffWork, TickKind, WorkFromHomeEntry
from .timesheet_client import TimesheetError

logger = logging.getLogger(__name__)

PING_KINDS = (TickKind.REMINDER_PING, TickKind.BROAD_QUIZ_PING)


class SignalUnavailableError(RuntimeError):
    """An external signal needed for eligibility could not be read."""


class AttendanceSource(Protocol):
    async def list_work_from_home(self, day: Optional[date] = None) -> List[WorkFromHomeEntry]: ...

    async def list_off_work(self, day: Optional[date] = None) -> OffWork: ...


class PresenceSource(Protocol):
    async def list_voice_participants(self, clan_id: str, channel_filter: str = "") -> Dict[str, Any]: ...


@dataclass(slots=True, frozen=True)
class Signals:
    """External inputs for one tick, already normalised."""

    day_part: DayPart
    off_work: frozenset[str] = frozenset()
    wfh_current: frozenset[str] = frozenset()
    wfh_all: frozenset[str] = frozenset()
    present_ids: frozenset[str] = frozenset()


def unique_by_id(members: Iterable[Member]) -> List[Member]:
    seen: set[str] = set()
    result: List[Member] = []
    for member in members:
        if member.id in seen:
            continue
        seen.add(member.id)
        result.append(member)
    return result


def eligibility_criteria(
    kind: TickKind,
    now: datetime,
    signals: Signals,
    *,
    user_type: str,
    freshness: timedelta,
) -> Criteria:
    """Build the filter pipeline for a ping tick.

    Pure: the result depends only on the arguments.
    """

    if kind not in PING_KINDS:
        raise ValueError(f"{kind.value} has no eligibility rules")
    cutoff = now - freshness
    criteria = Criteria().where(
        field_equals("user_type", user_type, name="monitored type"),
        field_equals("deactivated", False, name="active"),
        is_not_null("last_message_id", name="has interacted"),
        field_not_in("username", signals.off_work, name="not off work"),
        field_not_in("id", signals.present_ids, name="not in voice channel"),
        ping_null_or_at_most(cutoff, name="no fresh ping"),
        null_or_at_most("last_message_time", cutoff, name="not recently active"),
    )
    if kind is TickKind.REMINDER_PING:
        return criteria.where(email_in(signals.wfh_current, name="working from home"))
    return criteria.where(email_not_in(signals.wfh_all, name="not working from home"))


class EligibilityResolver:
    def __init__(
        self,
        database: Database,
        attendance: AttendanceSource,
        presence: PresenceSource,
        clock: Clock,
        *,
        clan_id: str,
        user_type: str,
        freshness: Mapping[TickKind, timedelta],
    ) -> None:
        self.database = database
        self.attendance = attendance
        self.presence = presence
        self.clock = clock
        self.clan_id = clan_id
        self.user_type = user_type
        self.freshness = dict(freshness)

    async def gather_signals(self, now: datetime) -> Signals:
        day = self.clock.local_date(now)
        day_part = self.clock.day_part(now)
        try:
            wfh = await self.attendance.list_work_from_home(day)
            off_work = await self.attendance.list_off_work(day)
            voice = await self.presence.list_voice_participants(self.clan_id, "")
        except (TimesheetError, ChatApiError, httpx.HTTPError) as exc:
            raise SignalUnavailableError(str(exc)) from exc

        wanted_parts = {day_part, DayPart.FULLDAY}
        display_names = {
            user.get("participant")
            for user in voice.get("voice_channel_users", []) or []
            if user.get("participant")
        }
        present_ids: frozenset[str] = frozenset()
        if display_names:
            present = self.database.find_members(
                Criteria().where(field_in("display_name", display_names))
            )
            present_ids = frozenset(member.id for member in present)

        return Signals(
            day_part=day_part,
            off_work=frozenset(off_work.usernames),
            wfh_current=frozenset(e.email for e in wfh if e.day_part in wanted_parts),
            wfh_all=frozenset(e.email for e in wfh),
            present_ids=present_ids,
        )

    def criteria_for(self, kind: TickKind, now: datetime, signals: Signals) -> Criteria:
        return eligibility_criteria(
            kind,
            now,
            signals,
            user_type=self.user_type,
            freshness=self.freshness[kind],
        )

    async def resolve(self, kind: TickKind, now: datetime) -> List[Member]:
        signals = await self.gather_signals(now)
        criteria = self.criteria_for(kind, now, signals)
        eligible = unique_by_id(self.database.find_members(criteria))
        logger.info(
            "Resolved %s eligible members for %s (%s, %s WFH, %s off, %s present)",
            len(eligible),
            kind.value,
            signals.day_part.value,
            len(signals.wfh_current),
            len(signals.off_work),
            len(signals.present_ids),
        )
        return eligible

    async def explain(self, kind: TickKind, now: datetime) -> List[Dict[str, Any]]:
        """Per member, the first rule that rejected them (``None`` if eligible)."""

        signals = await self.gather_signals(now)
        criteria = self.criteria_for(kind, now, signals)
        return [
            {
                "member_id": member.id,
                "username": member.username,
                "rejected_by": criteria.first_failure(member),
            }
            for member in unique_by_id(self.database.find_members())
        ]


__all__ = [
    "EligibilityResolver",
    "SignalUnavailableError",
    "Signals",
    "eligibility_criteria",
    "unique_by_id",
    "AttendanceSource",
    "PresenceSource",
]
