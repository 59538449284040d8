"""Outbound chat message envelopes and the texts WFH Pulse sends."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional

from .models import Member, TickKind


class MessageMode(IntEnum):
    CHANNEL_MESSAGE = 2
    DM_MESSAGE = 4


@dataclass(slots=True)
class Mention:
    user_id: str
    s: int
    e: int


@dataclass(slots=True)
class OutboundMessage:
    clan_id: str
    channel_id: str
    text: str
    mode: MessageMode = MessageMode.CHANNEL_MESSAGE
    is_public: bool = False
    is_parent_public: bool = True
    parent_id: str = "0"
    mentions: List[Mention] = field(default_factory=list)
    attachments: Optional[List[Dict[str, Any]]] = None
    ref: Optional[List[Dict[str, Any]]] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "clan_id": self.clan_id,
            "channel_id": self.channel_id,
            "mode": int(self.mode),
            "is_public": self.is_public,
            "is_parent_public": self.is_parent_public,
            "parent_id": self.parent_id,
            "msg": {"t": self.text},
            "mentions": [{"user_id": m.user_id, "s": m.s, "e": m.e} for m in self.mentions],
        }
        if self.attachments is not None:
            payload["attachments"] = self.attachments
        if self.ref is not None:
            payload["ref"] = self.ref
        return payload


def mention_at(text: str, token: str, user_id: str) -> Mention:
    """Build a mention covering the first occurrence of ``token`` in ``text``.

    Offsets count UTF-16 code units, as the chat clients do.
    """

    start = text.find(token)
    if start < 0:
        raise ValueError(f"{token!r} does not occur in message text")
    s = _utf16_len(text[:start])
    return Mention(user_id=user_id, s=s, e=s + _utf16_len(token))


def _utf16_len(value: str) -> int:
    return len(value.encode("utf-16-le")) // 2


REMINDER_TEXT = (
    "Hi {name}, this is your WFH check-in. "
    "Please reply to this message within {window} minutes."
)
QUIZ_TEXT = "Hi {name}, quick check-in: reply with anything to let us know you're around."
PUNISHMENT_TEXT = "@{name} did not answer the WFH check-in sent at {sent_at} !\n"


def build_ping(
    member: Member,
    kind: TickKind,
    clan_id: str,
    channel_id: str,
    *,
    response_window_minutes: int = 30,
) -> OutboundMessage:
    if kind is TickKind.REMINDER_PING:
        text = REMINDER_TEXT.format(name=member.name, window=response_window_minutes)
    elif kind is TickKind.BROAD_QUIZ_PING:
        text = QUIZ_TEXT.format(name=member.name)
    else:
        raise ValueError(f"{kind.value} does not send pings")
    return OutboundMessage(
        clan_id=clan_id,
        channel_id=channel_id,
        text=text,
        mode=MessageMode.DM_MESSAGE,
    )


def render_punishment(member: Member, sent_at: str) -> str:
    return PUNISHMENT_TEXT.format(name=member.name, sent_at=sent_at)


def build_supervisor_notice(
    member: Member, text: str, clan_id: str, channel_id: str
) -> OutboundMessage:
    return OutboundMessage(
        clan_id=clan_id,
        channel_id=channel_id,
        text=text,
        mode=MessageMode.CHANNEL_MESSAGE,
        mentions=[mention_at(text, f"@{member.name}", member.id)],
    )


__all__ = [
    "MessageMode",
    "Mention",
    "OutboundMessage",
    "mention_at",
    "build_ping",
    "render_punishment",
    "build_supervisor_notice",
]
