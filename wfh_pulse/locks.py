"""Per-member mutual exclusion."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class MemberLocks:
    """One ``asyncio.Lock`` per member id.

    The dispatcher and the escalation tracker both hold a member's lock while
    they read-modify-write that member's ping state.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, member_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(member_id, asyncio.Lock())
        async with lock:
            yield


__all__ = ["MemberLocks"]
