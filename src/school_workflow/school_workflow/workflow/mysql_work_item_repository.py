from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Sequence

from mysql.connector import errors as mysql_errors

from ..core.enums import EntityType, parse_status
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import WorkItem
from .repository import ANNEXED_FIELDS, WorkItemRepository

_COLUMNS = """
    item_id, entity_type, status, created_by, created_at, title, description,
    category, priority, responsible_id, points, student_id, task_id,
    previous_report_id, review_note, reviewed_by, reviewed_at, attachments, updated_at
"""


def _row_to_item(r: dict) -> WorkItem:
    entity_type = EntityType(r["entity_type"])
    raw_attachments = r.get("attachments")
    return WorkItem(
        item_id=int(r["item_id"]),
        entity_type=entity_type,
        status=parse_status(entity_type, r["status"]),
        created_by=int(r["created_by"]),
        created_at=r["created_at"],
        title=r.get("title") or "",
        description=r.get("description") or "",
        category=r.get("category"),
        priority=r.get("priority"),
        responsible_id=r.get("responsible_id"),
        points=r.get("points"),
        student_id=r.get("student_id"),
        task_id=r.get("task_id"),
        previous_report_id=r.get("previous_report_id"),
        review_note=r.get("review_note"),
        reviewed_by=r.get("reviewed_by"),
        reviewed_at=r.get("reviewed_at"),
        attachments=tuple(json.loads(raw_attachments)) if raw_attachments else (),
        updated_at=r.get("updated_at"),
    )


class MySQLWorkItemRepository(WorkItemRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, entity_type: EntityType, item_id: int) -> Optional[WorkItem]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM work_items WHERE item_id=%s AND entity_type=%s",
                (int(item_id), entity_type.value),
            )
            r = fetchone(cur)
            return _row_to_item(r) if r else None

    def create(
        self,
        *,
        entity_type: EntityType,
        status: Enum,
        created_by: int,
        created_at: datetime,
        title: str = "",
        description: str = "",
        category: Optional[str] = None,
        priority: Optional[str] = None,
        responsible_id: Optional[int] = None,
        points: Optional[int] = None,
        student_id: Optional[int] = None,
        task_id: Optional[int] = None,
        attachments: Sequence[str] = (),
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO work_items(
                    entity_type, status, created_by, created_at, title, description,
                    category, priority, responsible_id, points, student_id, task_id, attachments
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entity_type.value,
                    status.value,
                    int(created_by),
                    created_at,
                    title,
                    description,
                    category,
                    priority,
                    responsible_id,
                    points,
                    student_id,
                    task_id,
                    json.dumps(list(attachments)),
                ),
            )
            return int(cur.lastrowid)

    def create_revision(
        self,
        *,
        previous: WorkItem,
        status: Enum,
        created_by: int,
        created_at: datetime,
        description: str,
        attachments: Sequence[str] = (),
    ) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO work_items(
                        entity_type, status, created_by, created_at, title, description,
                        category, responsible_id, task_id, previous_report_id, attachments
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        previous.entity_type.value,
                        status.value,
                        int(created_by),
                        created_at,
                        previous.title,
                        description,
                        previous.category,
                        previous.responsible_id,
                        previous.task_id,
                        previous.item_id,
                        json.dumps(list(attachments)),
                    ),
                )
            except mysql_errors.IntegrityError:
                # uq_work_items_previous_report: the report was already superseded.
                return None
            return int(cur.lastrowid)

    def find_successor(self, *, report_id: int) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT item_id FROM work_items WHERE previous_report_id=%s",
                (int(report_id),),
            )
            r = fetchone(cur)
            return int(r["item_id"]) if r else None

    def update_status(
        self,
        *,
        entity_type: EntityType,
        item_id: int,
        expected: Enum,
        new_status: Enum,
        updated_at: datetime,
        changes: Optional[Mapping[str, object]] = None,
    ) -> bool:
        changes = dict(changes or {})
        unknown = set(changes) - ANNEXED_FIELDS
        if unknown:
            raise ValueError(f"Not a writable column: {sorted(unknown)}")

        assignments = ["status=%s", "updated_at=%s"]
        params: list[object] = [new_status.value, updated_at]
        for column in sorted(changes):
            assignments.append(f"{column}=%s")
            params.append(changes[column])

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE work_items
                SET {", ".join(assignments)}
                WHERE item_id=%s AND entity_type=%s AND status=%s
                """,
                tuple(params + [int(item_id), entity_type.value, expected.value]),
            )
            return cur.rowcount > 0

    def list(
        self,
        *,
        entity_type: EntityType,
        status: Optional[Enum] = None,
        created_by: Optional[int] = None,
        student_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[WorkItem]:
        clauses = ["entity_type=%s"]
        params: list[object] = [entity_type.value]

        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        if created_by is not None:
            clauses.append("created_by=%s")
            params.append(int(created_by))
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM work_items
                WHERE {where}
                ORDER BY created_at DESC, item_id DESC
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_row_to_item(r) for r in fetchall(cur)]
