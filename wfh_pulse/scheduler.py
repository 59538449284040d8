"""Cadence trigger: cron schedules, tick guards and the tick runner."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .clock import Clock, TimeBand, parse_bands, within_bands
from .dispatcher import Dispatcher
from .escalation import EscalationTracker
from .models import TickKind
from .resolver import EligibilityResolver, SignalUnavailableError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Schedule:
    kind: TickKind
    # crontab fields; day names because APScheduler numbers weekdays from Monday=0
    cron: str
    active_window: tuple[TimeBand, ...]
    description: str = ""


DEFAULT_SCHEDULES: tuple[Schedule, ...] = (
    Schedule(
        TickKind.REMINDER_PING,
        "*/5 9-10,13-16 * * mon-fri",
        parse_bands("09:00-11:00,13:00-17:00"),
        "Ping work-from-home members who have gone quiet",
    ),
    Schedule(
        TickKind.PUNISH_CHECK,
        "*/1 9-11,13-17 * * mon-fri",
        parse_bands("09:00-12:00,13:00-18:00"),
        "Escalate pings that were not answered in time",
    ),
    Schedule(
        TickKind.BROAD_QUIZ_PING,
        "0 9,11,14,16 * * mon-fri",
        parse_bands("09:00-17:00"),
        "Quiz in-office members",
    ),
)


@dataclass(slots=True)
class TickResult:
    kind: TickKind
    at: datetime
    status: str
    reason: Optional[str] = None
    eligible: List[str] = field(default_factory=list)
    sent: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)
    stale: List[str] = field(default_factory=list)
    punished: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "at": self.at.isoformat(),
            "status": self.status,
            "reason": self.reason,
            "eligible": list(self.eligible),
            "sent": list(self.sent),
            "failed": list(self.failed),
            "stale": list(self.stale),
            "punished": list(self.punished),
        }


class TickGuard:
    """Decides whether a tick may run at a given instant."""

    def __init__(
        self,
        clock: Clock,
        schedules: Iterable[Schedule],
        valid_minutes: tuple[TimeBand, ...] = (),
        is_holiday: Callable[[date], bool] = lambda _day: False,
    ) -> None:
        self.clock = clock
        self.windows = {schedule.kind: schedule.active_window for schedule in schedules}
        self.valid_minutes = valid_minutes
        self.is_holiday = is_holiday

    def check(self, kind: TickKind, now: datetime) -> Optional[str]:
        """Return why the tick must be skipped, or ``None``."""

        local = self.clock.local(now)
        if local.weekday() >= 5:
            return "weekend"
        if self.is_holiday(local.date()):
            return "holiday"
        window = self.windows.get(kind, ())
        if window and not within_bands(local.time(), window):
            return "outside active window"
        if self.valid_minutes and not within_bands(local.time(), self.valid_minutes):
            return "outside valid minutes"
        return None


class TickRunner:
    """Runs ticks; ticks of one kind never overlap."""

    def __init__(
        self,
        clock: Clock,
        guard: TickGuard,
        resolver: EligibilityResolver,
        dispatcher: Dispatcher,
        tracker: EscalationTracker,
    ) -> None:
        self.clock = clock
        self.guard = guard
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.tracker = tracker
        self._kind_locks = {kind: asyncio.Lock() for kind in TickKind}

    async def run(
        self, kind: TickKind, now: Optional[datetime] = None, *, force: bool = False
    ) -> TickResult:
        async with self._kind_locks[kind]:
            now = now or self.clock.now()
            reason = None if force else self.guard.check(kind, now)
            if reason:
                logger.info("Skipping %s tick at %s: %s", kind.value, now.isoformat(), reason)
                return TickResult(kind=kind, at=now, status="skipped", reason=reason)
            try:
                return await self._execute(kind, now)
            except SignalUnavailableError as exc:
                logger.warning("Abandoning %s tick at %s: signal unavailable: %s", kind.value, now.isoformat(), exc)
                return TickResult(kind=kind, at=now, status="failed", reason=str(exc))
            except Exception as exc:  # noqa: BLE001
                logger.exception("%s tick at %s failed", kind.value, now.isoformat())
                return TickResult(kind=kind, at=now, status="failed", reason=str(exc))

    async def _execute(self, kind: TickKind, now: datetime) -> TickResult:
        result = TickResult(kind=kind, at=now, status="completed")
        if kind in (TickKind.PUNISH_CHECK, TickKind.REMINDER_PING):
            # an overdue reminder must be escalated before a new one replaces it
            records = await self.tracker.run(now)
            result.punished = [record.member_id for record in records]
        if kind is TickKind.PUNISH_CHECK:
            return result

        members = await self.resolver.resolve(kind, now)
        result.eligible = [member.id for member in members]
        report = await self.dispatcher.dispatch(
            members,
            kind,
            requires_response=kind is TickKind.REMINDER_PING,
            now=now,
        )
        result.sent = report.sent
        result.failed = [{"member_id": f.member_id, "error": f.error} for f in report.failed]
        result.stale = report.stale
        return result


class CadenceScheduler:
    """Registers one APScheduler cron job per schedule."""

    def __init__(
        self,
        runner: TickRunner,
        clock: Clock,
        schedules: Iterable[Schedule] = DEFAULT_SCHEDULES,
    ) -> None:
        self.runner = runner
        self.clock = clock
        self.schedules = tuple(schedules)
        self.scheduler = AsyncIOScheduler(timezone=clock.tz)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def trigger_for(self, schedule: Schedule) -> CronTrigger:
        return CronTrigger.from_crontab(schedule.cron, timezone=self.clock.tz)

    def start(self) -> None:
        if self._running:
            logger.warning("Scheduler already running")
            return
        for schedule in self.schedules:
            self.scheduler.add_job(
                self.runner.run,
                trigger=self.trigger_for(schedule),
                args=[schedule.kind],
                id=schedule.kind.value,
                name=schedule.description or schedule.kind.value,
                replace_existing=True,
                # overlapping ticks of a kind wait on the runner's lock
                max_instances=3,
                coalesce=True,
                misfire_grace_time=30,
            )
            logger.info("Registered %s on '%s' (%s)", schedule.kind.value, schedule.cron, self.clock.tz.key)
        self.scheduler.start()
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    def jobs(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self.scheduler.get_jobs()
        ]


__all__ = [
    "Schedule",
    "DEFAULT_SCHEDULES",
    "TickGuard",
    "TickResult",
    "TickRunner",
    "CadenceScheduler",
]
