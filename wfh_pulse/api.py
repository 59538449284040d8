"""FastAPI application exposing the WFH Pulse REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, status
from pydantic import BaseModel

from .chat_client import ChatClient
from .config import Settings, load_settings
from .db import Database
from .models import TickKind
from .service import EngagementService
from .timesheet_client import TimesheetClient


class ActivityEvent(BaseModel):
    member_id: str
    message_id: str
    created_at: Optional[datetime] = None


def build_service(settings: Settings) -> EngagementService:
    database = Database(settings.database_path)
    chat_client = ChatClient(settings.chat_api_token, settings.chat_api_base)
    timesheet_client = TimesheetClient(settings.timesheet_api_base, settings.timesheet_api_key)
    return EngagementService(settings, database, chat_client, timesheet_client)


def create_app(
    settings: Optional[Settings] = None, service: Optional[EngagementService] = None
) -> FastAPI:
    settings = settings or load_settings()
    service = service or build_service(settings)

    async def verify_api_key(x_api_key: str = Header(..., alias="X-API-Key")) -> None:
        if x_api_key != settings.api_key:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid api key")

    def date_dependency(value: Optional[str] = None) -> date:
        if not value:
            return service.clock.local_date(service.clock.now())
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD") from exc

    def tick_kind(kind: str) -> TickKind:
        try:
            return TickKind(kind)
        except ValueError as exc:
            choices = ", ".join(k.value for k in TickKind)
            raise HTTPException(status_code=400, detail=f"Unknown tick kind. Use one of: {choices}") from exc

    app = FastAPI(title="WFH Pulse API", version="1.0.0")

    @app.on_event("startup")
    async def startup_event() -> None:  # pragma: no cover - io bound
        await service.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - io bound
        await service.stop()

    def get_service() -> EngagementService:
        return service

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/schedules")
    async def get_schedules(
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        return {"schedules": svc.get_schedules()}

    @app.get("/api/punishments")
    async def get_punishments(
        date_param: Optional[str] = None,
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        day = date_dependency(date_param)
        return {"date": day.isoformat(), "punishments": svc.get_punishments(day)}

    @app.get("/api/members/awaiting")
    async def get_awaiting(
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        return {"members": svc.get_awaiting_members()}

    @app.get("/api/members/{member_id}")
    async def get_member(
        member_id: str,
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        member = svc.get_member(member_id)
        if not member:
            raise HTTPException(status_code=404, detail="member not found")
        return {"member": member}

    @app.get("/api/eligibility/{kind}")
    async def get_eligibility(
        kind: str,
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        tick = tick_kind(kind)
        if tick is TickKind.PUNISH_CHECK:
            raise HTTPException(status_code=400, detail="punish-check has no eligibility preview")
        return {"kind": tick.value, "members": await svc.preview_eligibility(tick)}

    @app.post("/api/ticks/{kind}")
    async def run_tick(
        kind: str,
        force: bool = False,
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        result = await svc.run_tick(tick_kind(kind), force=force)
        return result.to_dict()

    @app.post("/api/activity", status_code=status.HTTP_202_ACCEPTED)
    async def post_activity(
        event: ActivityEvent,
        _: None = Depends(verify_api_key),
        svc: EngagementService = Depends(get_service),
    ) -> dict[str, object]:
        updated = svc.record_activity(event.member_id, event.message_id, event.created_at)
        return {"member_id": event.member_id, "updated": updated}

    return app


__all__ = ["create_app", "build_service"]
