"""MCP server exposing WFH Pulse tools."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .api import build_service
from .config import load_settings
from .models import TickKind

mcp = FastMCP("wfh-pulse")

_settings = load_settings()
_service = build_service(_settings)


def _ensure_date(day_str: Optional[str] = None):
    if not day_str:
        return _service.clock.local_date(_service.clock.now())
    return datetime.strptime(day_str, "%Y-%m-%d").date()


@mcp.tool()
async def get_punishments(date: Optional[str] = None) -> dict:
    """Return punishments recorded for unanswered check-ins on the date."""

    day = _ensure_date(date)
    return {"date": day.isoformat(), "punishments": _service.get_punishments(day)}


@mcp.tool()
async def get_awaiting_members() -> dict:
    """Return members with a check-in waiting for an answer."""

    return {"members": _service.get_awaiting_members()}


@mcp.tool()
async def preview_eligibility(kind: str = "reminder-ping") -> dict:
    """Explain who the next ping tick would reach, and why others are skipped."""

    tick = TickKind(kind)
    if tick is TickKind.PUNISH_CHECK:
        raise ValueError("kind must be one of: reminder-ping, broad-quiz-ping")
    return {"kind": tick.value, "members": await _service.preview_eligibility(tick)}


@mcp.tool()
async def run_punish_check() -> dict:
    """Run the unanswered check-in escalation now."""

    await _service.queue.start()
    result = await _service.run_tick(TickKind.PUNISH_CHECK)
    await _service.queue.drain()
    return result.to_dict()


__all__ = [
    "mcp",
    "get_punishments",
    "get_awaiting_members",
    "preview_eligibility",
    "run_punish_check",
]
