from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import ClassPointsRow, LedgerEntry, StudentPointsRow
from .repository import LedgerRepository


def _window(column: str, since: Optional[datetime], until: Optional[datetime]) -> tuple[str, list[object]]:
    clauses: list[str] = []
    params: list[object] = []
    if since is not None:
        clauses.append(f"{column}>=%s")
        params.append(since)
    if until is not None:
        clauses.append(f"{column}<%s")
        params.append(until)
    return (" AND ".join(clauses) or "1=1"), params


class MySQLLedgerRepository(LedgerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert(self, *, achievement_id: int, student_id: int, points: int, created_at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO points_ledger(achievement_id, student_id, points, created_at)
                VALUES(%s,%s,%s,%s)
                """,
                (int(achievement_id), int(student_id), int(points), created_at),
            )
            return int(cur.lastrowid)

    def sum_points(
        self,
        *,
        student_id: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        where, params = _window("created_at", since, until)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COALESCE(SUM(points), 0) AS total
                FROM points_ledger
                WHERE student_id=%s AND {where}
                """,
                tuple([int(student_id)] + params),
            )
            row = fetchone(cur)
            return int(row["total"]) if row else 0

    def list_for_student(self, *, student_id: int, limit: int = 200) -> Sequence[LedgerEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT entry_id, achievement_id, student_id, points, created_at
                FROM points_ledger
                WHERE student_id=%s
                ORDER BY created_at DESC, entry_id DESC
                LIMIT %s
                """,
                (int(student_id), int(limit)),
            )
            return [
                LedgerEntry(
                    entry_id=int(r["entry_id"]),
                    achievement_id=int(r["achievement_id"]),
                    student_id=int(r["student_id"]),
                    points=int(r["points"]),
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]

    def points_by_student(
        self,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[StudentPointsRow]:
        where, params = _window("l.created_at", since, until)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT s.student_id, s.name, s.class_id, c.name AS class_name,
                       COALESCE(SUM(l.points), 0) AS points
                FROM students s
                LEFT JOIN classes c ON c.class_id = s.class_id
                LEFT JOIN points_ledger l ON l.student_id = s.student_id AND {where}
                GROUP BY s.student_id, s.name, s.class_id, c.name
                """,
                tuple(params),
            )
            return [
                StudentPointsRow(
                    student_id=int(r["student_id"]),
                    name=r["name"],
                    class_id=r.get("class_id"),
                    class_name=r.get("class_name"),
                    points=int(r["points"]),
                )
                for r in fetchall(cur)
            ]

    def points_by_class(
        self,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[ClassPointsRow]:
        where, params = _window("l.created_at", since, until)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT c.class_id, c.name AS class_name,
                       COUNT(DISTINCT s.student_id) AS student_count,
                       COALESCE(SUM(l.points), 0) AS points
                FROM classes c
                LEFT JOIN students s ON s.class_id = c.class_id
                LEFT JOIN points_ledger l ON l.student_id = s.student_id AND {where}
                GROUP BY c.class_id, c.name
                """,
                tuple(params),
            )
            return [
                ClassPointsRow(
                    class_id=int(r["class_id"]),
                    class_name=r["class_name"],
                    student_count=int(r["student_count"]),
                    points=int(r["points"]),
                )
                for r in fetchall(cur)
            ]
