"""SQLite persistence layer for WFH Pulse."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .clock import from_timestamp, to_timestamp
from .filters import Criteria
from .models import Member, PingRecord, PingState, PunishmentRecord, TickKind

Connection = sqlite3.Connection
Row = sqlite3.Row

# Columns a caller may patch through ``update_member``.
MEMBER_COLUMNS = {
    "username",
    "display_name",
    "email",
    "user_type",
    "last_message_id",
    "last_message_time",
    "last_ping_message_id",
    "ping_state",
    "deactivated",
    "dm_channel_id",
}


class Database:
    """Lightweight wrapper around SQLite operations."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS members (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    display_name TEXT,
                    email TEXT,
                    user_type TEXT NOT NULL,
                    last_message_id TEXT,
                    last_message_time REAL,
                    last_ping_message_id TEXT,
                    ping_state TEXT NOT NULL DEFAULT 'NONE',
                    deactivated INTEGER NOT NULL DEFAULT 0,
                    dm_channel_id TEXT,
                    updated_at TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS ping_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    member_id TEXT NOT NULL,
                    message_id TEXT NOT NULL,
                    tick_kind TEXT NOT NULL,
                    requires_response INTEGER NOT NULL,
                    created_at REAL NOT NULL,
                    UNIQUE(member_id, message_id),
                    FOREIGN KEY(member_id) REFERENCES members(id)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS punishments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    member_id TEXT NOT NULL,
                    message TEXT NOT NULL,
                    status TEXT NOT NULL,
                    type TEXT NOT NULL,
                    complain INTEGER NOT NULL DEFAULT 0,
                    pm_confirm INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    FOREIGN KEY(member_id) REFERENCES members(id)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS holidays (
                    day TEXT PRIMARY KEY,
                    name TEXT
                )
                """
            )
            conn.commit()

    # region Members
    def upsert_member(self, member: Member) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO members (
                    id, username, display_name, email, user_type, last_message_id,
                    last_message_time, last_ping_message_id, ping_state, deactivated,
                    dm_channel_id, updated_at
                )
                VALUES (
                    :id, :username, :display_name, :email, :user_type, :last_message_id,
                    :last_message_time, :last_ping_message_id, :ping_state, :deactivated,
                    :dm_channel_id, :updated_at
                )
                ON CONFLICT(id) DO UPDATE SET
                    username=excluded.username,
                    display_name=excluded.display_name,
                    email=excluded.email,
                    user_type=excluded.user_type,
                    last_message_id=excluded.last_message_id,
                    last_message_time=excluded.last_message_time,
                    last_ping_message_id=excluded.last_ping_message_id,
                    ping_state=excluded.ping_state,
                    deactivated=excluded.deactivated,
                    dm_channel_id=excluded.dm_channel_id,
                    updated_at=excluded.updated_at
                """,
                {
                    "id": member.id,
                    "username": member.username,
                    "display_name": member.display_name,
                    "email": member.email,
                    "user_type": member.user_type,
                    "last_message_id": member.last_message_id,
                    "last_message_time": to_timestamp(member.last_message_time),
                    "last_ping_message_id": member.last_ping_message_id,
                    "ping_state": member.ping_state.value,
                    "deactivated": int(member.deactivated),
                    "dm_channel_id": member.dm_channel_id,
                    "updated_at": _utcnow_iso(),
                },
            )
            conn.commit()

    def get_member(self, member_id: str) -> Optional[Member]:
        with self.connect() as conn:
            cursor = conn.execute(_MEMBER_SELECT + " WHERE m.id = ?", (member_id,))
            row = cursor.fetchone()
            return _member_from_row(row) if row else None

    def find_members(self, criteria: Optional[Criteria] = None) -> List[Member]:
        """Return members (joined with their latest ping) matching ``criteria``.

        Rows come back in insertion order.
        """

        with self.connect() as conn:
            cursor = conn.execute(_MEMBER_SELECT + " ORDER BY m.rowid")
            members = [_member_from_row(row) for row in cursor.fetchall()]
        if criteria is None:
            return members
        return criteria.apply(members)

    def update_member(self, member_id: str, **patch: Any) -> bool:
        unknown = set(patch) - MEMBER_COLUMNS
        if unknown:
            raise ValueError(f"Unknown member columns: {sorted(unknown)}")
        if not patch:
            return False
        values = {key: _to_column(value) for key, value in patch.items()}
        assignments = ", ".join(f"{key} = :{key}" for key in values)
        values["updated_at"] = _utcnow_iso()
        values["member_id"] = member_id
        with self.connect() as conn:
            cursor = conn.execute(
                f"UPDATE members SET {assignments}, updated_at = :updated_at WHERE id = :member_id",
                values,
            )
            conn.commit()
            return cursor.rowcount == 1

    def mark_awaiting(self, member_id: str, message_id: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET ping_state = 'AWAITING', last_ping_message_id = ?, updated_at = ?
                WHERE id = ?
                """,
                (message_id, _utcnow_iso(), member_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    def mark_pinged(self, member_id: str, message_id: str) -> bool:
        """Point at a ping that needs no answer, unless an answer is pending."""

        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET last_ping_message_id = ?, updated_at = ?
                WHERE id = ? AND ping_state != 'AWAITING'
                """,
                (message_id, _utcnow_iso(), member_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    def mark_punished(self, member_id: str, message_id: str) -> bool:
        """Move ``AWAITING -> PUNISHED`` if ``message_id`` is still the live ping."""

        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET ping_state = 'PUNISHED', updated_at = ?
                WHERE id = ?
                  AND ping_state = 'AWAITING'
                  AND last_ping_message_id = ?
                """,
                (_utcnow_iso(), member_id, message_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    def record_activity(self, member_id: str, message_id: str, at: datetime) -> bool:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE members
                SET last_message_id = ?,
                    last_message_time = ?,
                    ping_state = CASE WHEN ping_state = 'AWAITING' THEN 'NONE' ELSE ping_state END,
                    updated_at = ?
                WHERE id = ? AND deactivated = 0
                """,
                (message_id, at.timestamp(), _utcnow_iso(), member_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    # endregion

    # region Ping records
    def insert_ping_record(self, record: PingRecord) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO ping_records (member_id, message_id, tick_kind, requires_response, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.member_id,
                    record.message_id,
                    record.tick_kind.value,
                    int(record.requires_response),
                    record.created_at.timestamp(),
                ),
            )
            conn.commit()

    def get_ping_records(self, member_id: str) -> List[PingRecord]:
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM ping_records WHERE member_id = ? ORDER BY created_at, id",
                (member_id,),
            )
            return [
                PingRecord(
                    member_id=row["member_id"],
                    message_id=row["message_id"],
                    created_at=from_timestamp(row["created_at"]),
                    tick_kind=TickKind(row["tick_kind"]),
                    requires_response=bool(row["requires_response"]),
                )
                for row in cursor.fetchall()
            ]

    # endregion

    # region Punishments
    def insert_punishment_record(self, record: PunishmentRecord) -> int:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO punishments (member_id, message, status, type, complain, pm_confirm, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.member_id,
                    record.message,
                    record.status,
                    record.type,
                    int(record.complain),
                    int(record.pm_confirm),
                    record.created_at.timestamp(),
                ),
            )
            conn.commit()
            record.id = cursor.lastrowid
            return cursor.lastrowid

    def get_punishments(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT p.id, p.member_id, m.username, m.display_name, p.message,
                       p.status, p.type, p.complain, p.pm_confirm, p.created_at
                FROM punishments p
                JOIN members m ON m.id = p.member_id
                WHERE p.created_at >= ? AND p.created_at < ?
                ORDER BY p.created_at, p.id
                """,
                (start.timestamp(), end.timestamp()),
            )
            results: List[Dict[str, Any]] = []
            for row in cursor.fetchall():
                item = dict(row)
                item["complain"] = bool(item["complain"])
                item["pm_confirm"] = bool(item["pm_confirm"])
                item["created_at"] = from_timestamp(item["created_at"]).isoformat()
                results.append(item)
            return results

    # endregion

    # region Holidays
    def add_holiday(self, day: date, name: str | None = None) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO holidays (day, name) VALUES (?, ?)
                ON CONFLICT(day) DO UPDATE SET name = excluded.name
                """,
                (day.isoformat(), name),
            )
            conn.commit()

    def is_holiday(self, day: date) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("SELECT 1 FROM holidays WHERE day = ?", (day.isoformat(),))
            return cursor.fetchone() is not None

    # endregion


_MEMBER_SELECT = """
    SELECT m.*,
           p.message_id AS ping_message_id,
           p.tick_kind AS ping_tick_kind,
           p.requires_response AS ping_requires_response,
           p.created_at AS ping_created_at
    FROM members m
    LEFT JOIN ping_records p
      ON p.member_id = m.id
     AND p.message_id = m.last_ping_message_id
"""


def _member_from_row(row: Row) -> Member:
    latest_ping = None
    if row["ping_message_id"] is not None:
        latest_ping = PingRecord(
            member_id=row["id"],
            message_id=row["ping_message_id"],
            created_at=from_timestamp(row["ping_created_at"]),
            tick_kind=TickKind(row["ping_tick_kind"]),
            requires_response=bool(row["ping_requires_response"]),
        )
    return Member(
        id=row["id"],
        username=row["username"],
        display_name=row["display_name"],
        email=row["email"],
        user_type=row["user_type"],
        last_message_id=row["last_message_id"],
        last_message_time=from_timestamp(row["last_message_time"]),
        last_ping_message_id=row["last_ping_message_id"],
        ping_state=PingState(row["ping_state"]),
        deactivated=bool(row["deactivated"]),
        dm_channel_id=row["dm_channel_id"],
        latest_ping=latest_ping,
    )


def _to_column(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, PingState):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = ["Database"]
