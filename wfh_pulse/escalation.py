"""Non-response escalation: AWAITING pings that time out become punishments."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import List

from .clock import Clock
from .db import Database
from .filters import Criteria, Filter, field_equals, ping_created_between
from .locks import MemberLocks
from .messages import build_supervisor_notice, render_punishment
from .models import Member, PingState, PunishmentRecord
from .outbound import OutboundQueue

logger = logging.getLogger(__name__)


class EscalationTracker:
    def __init__(
        self,
        database: Database,
        queue: OutboundQueue,
        locks: MemberLocks,
        clock: Clock,
        *,
        clan_id: str,
        supervisor_channel_id: str,
        user_type: str,
        response_window: timedelta = timedelta(minutes=30),
        workday_start: time = time(8, 0),
        workday_end: time = time(18, 0),
    ) -> None:
        self.database = database
        self.queue = queue
        self.locks = locks
        self.clock = clock
        self.clan_id = clan_id
        self.supervisor_channel_id = supervisor_channel_id
        self.user_type = user_type
        self.response_window = response_window
        self.workday_start = workday_start
        self.workday_end = workday_end

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        """Ping creation times eligible for punishment: ``(lower, upper]``."""

        day_start, _ = self.clock.day_bounds(now)
        lower = max(day_start, self.clock.at(now, self.workday_start))
        upper = min(now - self.response_window, self.clock.at(now, self.workday_end))
        return lower, upper

    def overdue_criteria(self, now: datetime) -> Criteria:
        lower, upper = self.window(now)
        return Criteria().where(
            field_equals("ping_state", PingState.AWAITING, name="awaiting response"),
            field_equals("deactivated", False, name="active"),
            field_equals("user_type", self.user_type, name="monitored type"),
            Filter(
                "ping expects answer",
                lambda m: m.latest_ping is not None and m.latest_ping.requires_response,
            ),
            ping_created_between(lower, upper, name="ping overdue today"),
        )

    def find_overdue(self, now: datetime) -> List[Member]:
        return self.database.find_members(self.overdue_criteria(now))

    async def run(self, now: datetime) -> List[PunishmentRecord]:
        records: List[PunishmentRecord] = []
        for member in self.find_overdue(now):
            try:
                record = await self._punish(member, now)
            except Exception as exc:  # noqa: BLE001
                logger.error("Escalation for member %s failed: %s", member.id, exc)
                continue
            if record is not None:
                records.append(record)
        if records:
            logger.info("Punished %s members for unanswered pings", len(records))
        return records

    async def _punish(self, member: Member, now: datetime) -> PunishmentRecord | None:
        ping = member.latest_ping
        if ping is None:
            return None
        async with self.locks.hold(member.id):
            if not self.database.mark_punished(member.id, ping.message_id):
                logger.debug("Member %s already left AWAITING for %s", member.id, ping.message_id)
                return None
            text = render_punishment(member, self.clock.format(ping.created_at))
            record = PunishmentRecord(member_id=member.id, message=text, created_at=now)
            self.database.insert_punishment_record(record)
        self.queue.enqueue(
            build_supervisor_notice(member, text, self.clan_id, self.supervisor_channel_id)
        )
        logger.info("Member %s punished for ping %s", member.id, ping.message_id)
        return record


__all__ = ["EscalationTracker"]
