"""Member factories, time helpers and fake external services."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from wfh_pulse.chat_client import ChatApiError, SendResult
from wfh_pulse.db import Database
from wfh_pulse.messages import OutboundMessage
from wfh_pulse.models import DayPart, Member, OffWork, PingRecord, PingState, TickKind, WorkFromHomeEntry
from wfh_pulse.timesheet_client import TimesheetError

TZ = "Asia/Ho_Chi_Minh"
CLAN_ID = "clan-1"
SUPERVISOR_CHANNEL = "chan-machleo"


def local(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """A local wall-clock time in the test zone, as an aware UTC datetime."""

    return datetime(year, month, day, hour, minute, tzinfo=ZoneInfo(TZ)).astimezone(timezone.utc)


# 2026-10-19 is a Monday
MONDAY_MORNING = local(2026, 10, 19, 9, 30)
MONDAY_AFTERNOON = local(2026, 10, 19, 14, 0)


def make_member(member_id: str, **overrides: Any) -> Member:
    values: Dict[str, Any] = {
        "id": member_id,
        "username": member_id,
        "display_name": member_id.title(),
        "email": f"{member_id}@ncc.asia",
        "user_type": "MEZON",
        "last_message_id": f"in-{member_id}",
    }
    values.update(overrides)
    return Member(**values)


def add_ping(
    database: Database,
    member_id: str,
    message_id: str,
    created_at: datetime,
    *,
    awaiting: bool = True,
    kind: TickKind = TickKind.REMINDER_PING,
) -> None:
    database.insert_ping_record(
        PingRecord(
            member_id=member_id,
            message_id=message_id,
            created_at=created_at,
            tick_kind=kind,
            requires_response=awaiting,
        )
    )
    database.update_member(
        member_id,
        last_ping_message_id=message_id,
        ping_state=PingState.AWAITING if awaiting else PingState.NONE,
    )


class FakeAttendance:
    def __init__(
        self,
        wfh: Optional[List[WorkFromHomeEntry]] = None,
        off: Optional[List[str]] = None,
        fail: bool = False,
    ) -> None:
        self.wfh = wfh or []
        self.off = off or []
        self.fail = fail
        self.days: List[Optional[date]] = []

    async def list_work_from_home(self, day: Optional[date] = None) -> List[WorkFromHomeEntry]:
        self.days.append(day)
        if self.fail:
            raise TimesheetError("wfh", "unavailable")
        return list(self.wfh)

    async def list_off_work(self, day: Optional[date] = None) -> OffWork:
        return OffWork(usernames=list(self.off))


class FakeChat:
    """Records sent messages; sends to channels in ``failing`` raise."""

    def __init__(self, participants: Optional[List[str]] = None) -> None:
        self.participants = participants or []
        self.sent: List[OutboundMessage] = []
        self.failing: set[str] = set()
        self.opened: List[str] = []
        self.presence_fails = False
        self._counter = 0

    async def list_voice_participants(self, clan_id: str, channel_filter: str = "") -> Dict[str, Any]:
        if self.presence_fails:
            raise ChatApiError("voice-channel-users", "unavailable")
        return {"voice_channel_users": [{"participant": name} for name in self.participants]}

    async def open_direct_channel(self, user_id: str) -> str:
        self.opened.append(user_id)
        return f"dm-{user_id}"

    async def send_message(self, message: OutboundMessage) -> SendResult:
        if message.channel_id in self.failing:
            raise ChatApiError("messages", "rate_limited")
        self._counter += 1
        self.sent.append(message)
        return SendResult(message_id=f"msg-{self._counter}", channel_id=message.channel_id)


def wfh(email: str, part: DayPart = DayPart.MORNING) -> WorkFromHomeEntry:
    return WorkFromHomeEntry(email=email, day_part=part)
