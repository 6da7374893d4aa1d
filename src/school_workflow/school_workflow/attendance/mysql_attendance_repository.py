from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import AttendanceStatus, Session
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceFact
from .repository import AttendanceRepository, RosterRepository

_COLUMNS = "student_id, class_id, att_date, session, status, recorded_by, recorded_at"


def _row_to_fact(r: dict) -> AttendanceFact:
    return AttendanceFact(
        student_id=int(r["student_id"]),
        class_id=int(r["class_id"]),
        date=r["att_date"],
        session=Session(r["session"]),
        status=AttendanceStatus(r["status"]),
        recorded_by=r.get("recorded_by"),
        recorded_at=r.get("recorded_at"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def upsert_facts(self, facts: Sequence[AttendanceFact]) -> int:
        if not facts:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT INTO attendance_facts(student_id, class_id, att_date, session, status, recorded_by, recorded_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    class_id=VALUES(class_id),
                    status=VALUES(status),
                    recorded_by=VALUES(recorded_by),
                    recorded_at=VALUES(recorded_at)
                """,
                [
                    (
                        int(f.student_id),
                        int(f.class_id),
                        f.date,
                        f.session.value,
                        f.status.value,
                        f.recorded_by,
                        f.recorded_at,
                    )
                    for f in facts
                ],
            )
            return len(facts)

    def facts_for_class(
        self,
        *,
        class_id: int,
        on: date,
        session: Optional[Session] = None,
    ) -> Sequence[AttendanceFact]:
        clauses = ["class_id=%s", "att_date=%s"]
        params: list[object] = [int(class_id), on]
        if session is not None:
            clauses.append("session=%s")
            params.append(session.value)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_facts
                WHERE {" AND ".join(clauses)}
                ORDER BY session, student_id
                """,
                tuple(params),
            )
            return [_row_to_fact(r) for r in fetchall(cur)]

    def facts_for_date(self, *, on: date) -> Sequence[AttendanceFact]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_facts
                WHERE att_date=%s
                ORDER BY class_id, session, student_id
                """,
                (on,),
            )
            return [_row_to_fact(r) for r in fetchall(cur)]

    def facts_for_student(
        self,
        *,
        student_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceFact]:
        clauses = ["student_id=%s"]
        params: list[object] = [int(student_id)]
        if start is not None:
            clauses.append("att_date>=%s")
            params.append(start)
        if end is not None:
            clauses.append("att_date<=%s")
            params.append(end)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_facts
                WHERE {" AND ".join(clauses)}
                ORDER BY att_date, session
                """,
                tuple(params),
            )
            return [_row_to_fact(r) for r in fetchall(cur)]


class MySQLRosterRepository(RosterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def class_exists(self, class_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT class_id FROM classes WHERE class_id=%s", (int(class_id),))
            return fetchone(cur) is not None

    def student_ids_for_class(self, class_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id FROM students WHERE class_id=%s AND is_active=1 ORDER BY student_id",
                (int(class_id),),
            )
            return [int(r["student_id"]) for r in fetchall(cur)]
