"""HTTP client for the chat platform's bot REST API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .messages import OutboundMessage

CHANNEL_TYPE_VOICE = 4


class ChatApiError(RuntimeError):
    """Raised when the chat platform returns an error response."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Chat API error for {method}: {error}")
        self.method = method
        self.error = error


@dataclass(slots=True)
class SendResult:
    message_id: str
    channel_id: str


class ChatClient:
    """Async wrapper around the chat endpoints used by WFH Pulse."""

    def __init__(
        self,
        token: str,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise ChatApiError(path, str(exc) or exc.__class__.__name__) from exc
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_error:
            raise ChatApiError(path, data.get("error") or f"http_{response.status_code}")
        if data.get("error"):
            raise ChatApiError(path, str(data["error"]))
        return data

    async def list_voice_participants(self, clan_id: str, channel_filter: str = "") -> Dict[str, Any]:
        """Return ``{"voice_channel_users": [{"participant": name, ...}]}``."""

        params: Dict[str, Any] = {"clan_id": clan_id, "channel_type": CHANNEL_TYPE_VOICE}
        if channel_filter:
            params["channel_id"] = channel_filter
        return await self._request("GET", "voice-channel-users", params=params)

    async def open_direct_channel(self, user_id: str) -> str:
        data = await self._request("POST", "direct-channels", json={"user_ids": [user_id]})
        channel_id = data.get("channel_id")
        if not channel_id:
            raise ChatApiError("direct-channels", "missing_channel_id")
        return str(channel_id)

    async def send_message(self, message: OutboundMessage) -> SendResult:
        data = await self._request("POST", "messages", json=message.to_payload())
        message_id = data.get("message_id")
        if not message_id:
            raise ChatApiError("messages", "missing_message_id")
        return SendResult(message_id=str(message_id), channel_id=message.channel_id)


__all__ = ["ChatClient", "ChatApiError", "SendResult", "CHANNEL_TYPE_VOICE"]
