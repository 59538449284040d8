"""Buffered outbound message delivery."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from .chat_client import SendResult
from .messages import OutboundMessage

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    async def send_message(self, message: OutboundMessage) -> SendResult: ...


_Item = tuple[OutboundMessage, Optional["asyncio.Future[SendResult]"]]


class OutboundQueue:
    """Single worker that drains queued messages one at a time.

    ``submit`` waits for the delivery result; ``enqueue`` does not, and a
    failed fire-and-forget delivery is only logged.
    """

    def __init__(self, sender: MessageSender) -> None:
        self._sender = sender
        self._queue: asyncio.Queue[_Item] = asyncio.Queue()
        self._worker: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="wfh-pulse-outbound")

    async def stop(self) -> None:
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def __aenter__(self) -> "OutboundQueue":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def submit(self, message: OutboundMessage) -> SendResult:
        if not self.running:
            raise RuntimeError("outbound queue is not running")
        future: asyncio.Future[SendResult] = asyncio.get_running_loop().create_future()
        await self._queue.put((message, future))
        return await future

    def enqueue(self, message: OutboundMessage) -> None:
        self._queue.put_nowait((message, None))

    async def drain(self) -> None:
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            message, future = await self._queue.get()
            try:
                result = await self._sender.send_message(message)
            except Exception as exc:  # noqa: BLE001
                if future is None:
                    logger.error(
                        "Outbound delivery to channel %s failed: %s", message.channel_id, exc
                    )
                elif not future.done():
                    future.set_exception(exc)
            else:
                if future is not None and not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()


__all__ = ["OutboundQueue", "MessageSender"]
