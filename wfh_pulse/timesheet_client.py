"""HTTP client for the attendance/timesheet service."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from .models import DayPart, OffWork, WorkFromHomeEntry


class TimesheetError(RuntimeError):
    """Raised when the timesheet service cannot be queried."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"Timesheet error for {method}: {error}")
        self.method = method
        self.error = error


class TimesheetClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"X-Secret-Key": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, day: Optional[date]) -> Any:
        params = {"date": day.isoformat()} if day else {}
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TimesheetError(path, str(exc) or exc.__class__.__name__) from exc
        if not isinstance(data, dict) or "result" not in data:
            raise TimesheetError(path, "missing_result")
        return data["result"]

    async def list_work_from_home(self, day: Optional[date] = None) -> List[WorkFromHomeEntry]:
        entries: List[WorkFromHomeEntry] = []
        for item in await self._get("wfh", day) or []:
            email = item.get("emailAddress")
            day_part = item.get("dateTypeName")
            if not email or not day_part:
                continue
            try:
                entries.append(WorkFromHomeEntry(email=email.strip().lower(), day_part=DayPart(day_part)))
            except ValueError:
                # unknown day-part labels are ignored
                continue
        return entries

    async def list_off_work(self, day: Optional[date] = None) -> OffWork:
        result: Dict[str, Any] = await self._get("off-work", day) or {}
        return OffWork(usernames=[name for name in result.get("notSendUser", []) if name])


__all__ = ["TimesheetClient", "TimesheetError"]
