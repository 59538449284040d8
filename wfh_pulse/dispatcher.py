"""Rate-limited ping delivery."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from .db import Database
from .locks import MemberLocks
from .messages import build_ping
from .models import Member, PingRecord, TickKind
from .outbound import OutboundQueue

logger = logging.getLogger(__name__)


class DirectChannelOpener(Protocol):
    async def open_direct_channel(self, user_id: str) -> str: ...


@dataclass(slots=True)
class DispatchFailure:
    member_id: str
    error: str


@dataclass(slots=True)
class DispatchReport:
    kind: TickKind
    sent: List[str] = field(default_factory=list)
    failed: List[DispatchFailure] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "sent": list(self.sent),
            "failed": [{"member_id": f.member_id, "error": f.error} for f in self.failed],
            "stale": list(self.stale),
        }


class Dispatcher:
    """Send one ping per member, in order, pausing between members."""

    def __init__(
        self,
        database: Database,
        queue: OutboundQueue,
        channels: DirectChannelOpener,
        locks: MemberLocks,
        *,
        clan_id: str,
        delay: float = 0.2,
        response_window_minutes: int = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.database = database
        self.queue = queue
        self.channels = channels
        self.locks = locks
        self.clan_id = clan_id
        self.delay = delay
        self.response_window_minutes = response_window_minutes
        self._sleep = sleep

    async def dispatch(
        self,
        members: Sequence[Member],
        kind: TickKind,
        *,
        requires_response: bool,
        now: Optional[datetime] = None,
    ) -> DispatchReport:
        report = DispatchReport(kind=kind)
        for index, member in enumerate(members):
            try:
                sent = await self._ping(member, kind, requires_response, now)
            except Exception as exc:  # noqa: BLE001
                logger.error("Ping for member %s on %s failed: %s", member.id, kind.value, exc)
                report.failed.append(DispatchFailure(member_id=member.id, error=str(exc)))
            else:
                if sent:
                    report.sent.append(member.id)
                else:
                    report.stale.append(member.id)
            if index < len(members) - 1:
                await self._sleep(self.delay)
        logger.info(
            "%s dispatch finished: %s sent, %s failed",
            kind.value,
            len(report.sent),
            len(report.failed),
        )
        return report

    async def _ping(
        self,
        member: Member,
        kind: TickKind,
        requires_response: bool,
        now: Optional[datetime],
    ) -> bool:
        async with self.locks.hold(member.id):
            current = self.database.get_member(member.id)
            if current is None or _ping_state_changed(member, current):
                logger.info(
                    "Skipping %s for member %s: ping state changed since resolution",
                    kind.value,
                    member.id,
                )
                return False

            channel_id = member.dm_channel_id
            if not channel_id:
                channel_id = await self.channels.open_direct_channel(member.id)
                self.database.update_member(member.id, dm_channel_id=channel_id)
                member.dm_channel_id = channel_id

            message = build_ping(
                member,
                kind,
                self.clan_id,
                channel_id,
                response_window_minutes=self.response_window_minutes,
            )
            result = await self.queue.submit(message)
            record = PingRecord(
                member_id=member.id,
                message_id=result.message_id,
                created_at=now or datetime.now(timezone.utc),
                tick_kind=kind,
                requires_response=requires_response,
            )
            self.database.insert_ping_record(record)
            if requires_response:
                self.database.mark_awaiting(member.id, result.message_id)
            else:
                self.database.mark_pinged(member.id, result.message_id)
            logger.debug("Pinged member %s (%s) with message %s", member.id, kind.value, result.message_id)
            return True


def _ping_state_changed(snapshot: Member, current: Member) -> bool:
    return (
        current.deactivated
        or current.ping_state is not snapshot.ping_state
        or current.last_ping_message_id != snapshot.last_ping_message_id
    )


__all__ = ["Dispatcher", "DispatchReport", "DispatchFailure", "DirectChannelOpener"]
