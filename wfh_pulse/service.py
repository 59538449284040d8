"""Core orchestration logic for WFH Pulse."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from .chat_client import ChatClient
from .clock import Clock, parse_bands
from .config import Settings
from .db import Database
from .dispatcher import Dispatcher
from .escalation import EscalationTracker
from .filters import Criteria, field_equals
from .locks import MemberLocks
from .models import Member, PingState, TickKind
from .outbound import OutboundQueue
from .resolver import EligibilityResolver
from .scheduler import DEFAULT_SCHEDULES, CadenceScheduler, TickGuard, TickResult, TickRunner
from .timesheet_client import TimesheetClient

logger = logging.getLogger(__name__)


class EngagementService:
    """Wires the scheduler components together and exposes query helpers."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        chat_client: ChatClient,
        timesheet_client: TimesheetClient,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings
        self.database = database
        self.chat_client = chat_client
        self.timesheet_client = timesheet_client
        self.clock = clock or Clock(settings.timezone)
        self.locks = MemberLocks()
        self.queue = OutboundQueue(chat_client)

        self.resolver = EligibilityResolver(
            database,
            timesheet_client,
            chat_client,
            self.clock,
            clan_id=settings.clan_id,
            user_type=settings.monitored_user_type,
            freshness={
                TickKind.REMINDER_PING: timedelta(minutes=settings.reminder_freshness_minutes),
                TickKind.BROAD_QUIZ_PING: timedelta(minutes=settings.quiz_freshness_minutes),
            },
        )
        self.dispatcher = Dispatcher(
            database,
            self.queue,
            chat_client,
            self.locks,
            clan_id=settings.clan_id,
            delay=settings.dispatch_delay_ms / 1000,
            response_window_minutes=settings.response_window_minutes,
        )
        self.tracker = EscalationTracker(
            database,
            self.queue,
            self.locks,
            self.clock,
            clan_id=settings.clan_id,
            supervisor_channel_id=settings.supervisor_channel_id,
            user_type=settings.monitored_user_type,
            response_window=timedelta(minutes=settings.response_window_minutes),
            workday_start=settings.workday_start,
            workday_end=settings.workday_end,
        )
        self.guard = TickGuard(
            self.clock,
            DEFAULT_SCHEDULES,
            valid_minutes=parse_bands(settings.valid_minute_bands),
            is_holiday=self.is_holiday,
        )
        self.runner = TickRunner(self.clock, self.guard, self.resolver, self.dispatcher, self.tracker)
        self.scheduler = CadenceScheduler(self.runner, self.clock, DEFAULT_SCHEDULES)

    # region Lifecycle
    async def start(self) -> None:
        await self.queue.start()
        if self.settings.scheduler_enabled:
            self.scheduler.start()
        logger.info("WFH Pulse started (scheduler %s)", "on" if self.scheduler.is_running else "off")

    async def stop(self) -> None:
        self.scheduler.stop()
        await self.queue.stop()
        await self.chat_client.close()
        await self.timesheet_client.close()

    # endregion

    # region Ticks
    def is_holiday(self, day: date) -> bool:
        return day in self.settings.holidays or self.database.is_holiday(day)

    async def run_tick(
        self, kind: TickKind, now: Optional[datetime] = None, *, force: bool = False
    ) -> TickResult:
        return await self.runner.run(kind, now, force=force)

    async def preview_eligibility(
        self, kind: TickKind, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        return await self.resolver.explain(kind, now or self.clock.now())

    def record_activity(
        self, member_id: str, message_id: str, at: Optional[datetime] = None
    ) -> bool:
        """Inbound message from a member: clears a pending check-in.

        A naive ``at`` is local wall-clock time in the configured zone.
        """

        if at is None:
            at = self.clock.now()
        elif at.tzinfo is None:
            at = at.replace(tzinfo=self.clock.tz)
        updated = self.database.record_activity(member_id, message_id, at)
        if updated:
            logger.debug("Recorded activity for member %s", member_id)
        return updated

    # endregion

    # region Query helpers
    def get_member(self, member_id: str) -> Optional[Dict[str, Any]]:
        member = self.database.get_member(member_id)
        return member_to_dict(member) if member else None

    def get_awaiting_members(self) -> List[Dict[str, Any]]:
        criteria = Criteria().where(field_equals("ping_state", PingState.AWAITING))
        return [member_to_dict(member) for member in self.database.find_members(criteria)]

    def get_punishments(self, day: date) -> List[Dict[str, Any]]:
        start = datetime.combine(day, time.min, tzinfo=self.clock.tz).astimezone(timezone.utc)
        return self.database.get_punishments(start, start + timedelta(days=1))

    def get_schedules(self) -> List[Dict[str, Any]]:
        if self.scheduler.is_running:
            return self.scheduler.jobs()
        return [
            {"id": schedule.kind.value, "name": schedule.description, "cron": schedule.cron}
            for schedule in DEFAULT_SCHEDULES
        ]

    # endregion


def member_to_dict(member: Member) -> Dict[str, Any]:
    return {
        "id": member.id,
        "username": member.username,
        "display_name": member.display_name,
        "email": member.email,
        "user_type": member.user_type,
        "ping_state": member.ping_state.value,
        "awaiting_response": member.awaiting_response,
        "deactivated": member.deactivated,
        "last_message_time": member.last_message_time.isoformat() if member.last_message_time else None,
        "last_ping_message_id": member.last_ping_message_id,
        "last_ping_at": member.latest_ping.created_at.isoformat() if member.latest_ping else None,
    }


__all__ = ["EngagementService", "member_to_dict"]
