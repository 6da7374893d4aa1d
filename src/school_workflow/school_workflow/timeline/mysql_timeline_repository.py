from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import EntityType, TimelineAction
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import TimelineEntry
from .repository import TimelineRepository


class MySQLTimelineRepository(TimelineRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert(
        self,
        *,
        entity_type: EntityType,
        work_item_id: int,
        action_type: TimelineAction,
        performer_id: int,
        created_at: datetime,
        to_user_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO timeline_entries(
                    entity_type, work_item_id, action_type, performer_id, to_user_id, note, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entity_type.value,
                    int(work_item_id),
                    action_type.value,
                    int(performer_id),
                    to_user_id,
                    note,
                    created_at,
                ),
            )
            return int(cur.lastrowid)

    def latest_created_at(self, *, entity_type: EntityType, work_item_id: int) -> Optional[datetime]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT MAX(created_at) AS latest
                FROM timeline_entries
                WHERE entity_type=%s AND work_item_id=%s
                """,
                (entity_type.value, int(work_item_id)),
            )
            row = fetchone(cur)
            return row.get("latest") if row else None

    def list_for(self, *, entity_type: EntityType, work_item_id: int) -> Sequence[TimelineEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT entry_id, entity_type, work_item_id, action_type,
                       performer_id, to_user_id, note, created_at
                FROM timeline_entries
                WHERE entity_type=%s AND work_item_id=%s
                ORDER BY created_at ASC, entry_id ASC
                """,
                (entity_type.value, int(work_item_id)),
            )
            return [
                TimelineEntry(
                    entry_id=int(r["entry_id"]),
                    entity_type=EntityType(r["entity_type"]),
                    work_item_id=int(r["work_item_id"]),
                    action_type=TimelineAction(r["action_type"]),
                    performer_id=int(r["performer_id"]),
                    to_user_id=r.get("to_user_id"),
                    note=r.get("note"),
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]
