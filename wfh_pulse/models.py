"""Dataclasses representing WFH Pulse domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class TickKind(str, Enum):
    REMINDER_PING = "reminder-ping"
    PUNISH_CHECK = "punish-check"
    BROAD_QUIZ_PING = "broad-quiz-ping"


class PingState(str, Enum):
    NONE = "NONE"
    AWAITING = "AWAITING"
    PUNISHED = "PUNISHED"


class DayPart(str, Enum):
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    FULLDAY = "Fullday"


@dataclass(slots=True)
class PingRecord:
    member_id: str
    message_id: str
    created_at: datetime
    tick_kind: TickKind = TickKind.REMINDER_PING
    requires_response: bool = True


@dataclass(slots=True)
class Member:
    id: str
    username: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    user_type: str = "MEZON"
    last_message_id: Optional[str] = None
    last_message_time: Optional[datetime] = None
    last_ping_message_id: Optional[str] = None
    ping_state: PingState = PingState.NONE
    deactivated: bool = False
    dm_channel_id: Optional[str] = None
    latest_ping: Optional[PingRecord] = field(default=None, compare=False)

    @property
    def awaiting_response(self) -> bool:
        return self.ping_state is PingState.AWAITING

    @property
    def name(self) -> str:
        """Name shown to people, falling back to the username."""

        return self.display_name or self.username


@dataclass(slots=True)
class PunishmentRecord:
    member_id: str
    message: str
    created_at: datetime
    status: str = "ACTIVE"
    type: str = "wfh"
    complain: bool = False
    pm_confirm: bool = False
    id: Optional[int] = None


@dataclass(slots=True, frozen=True)
class WorkFromHomeEntry:
    email: str
    day_part: DayPart


@dataclass(slots=True)
class OffWork:
    usernames: list[str] = field(default_factory=list)


__all__ = [
    "TickKind",
    "PingState",
    "DayPart",
    "PingRecord",
    "Member",
    "PunishmentRecord",
    "WorkFromHomeEntry",
    "OffWork",
]
