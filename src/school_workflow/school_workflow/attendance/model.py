from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus, Session


@dataclass(frozen=True)
class AttendanceFact:
    """Domain entity: one student's status for one (date, session).

    Keyed by (student_id, date, session); a correction overwrites the key.
    """

    student_id: int
    class_id: int
    date: date
    session: Session
    status: AttendanceStatus
    recorded_by: Optional[int] = None
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class DailyStatus:
    class_id: int
    date: date
    morning_taken: bool
    afternoon_taken: bool

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "date": self.date.isoformat(),
            "morningTaken": self.morning_taken,
            "afternoonTaken": self.afternoon_taken,
        }


@dataclass(frozen=True)
class AttendanceStats:
    total_sessions: int
    present_sessions: int
    absent_sessions: int
    percentage: int

    def to_dict(self) -> dict:
        return {
            "total": self.total_sessions,
            "present": self.present_sessions,
            "absent": self.absent_sessions,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class MonthlyStats:
    month: str
    stats: AttendanceStats

    def to_dict(self) -> dict:
        return {"month": self.month, **self.stats.to_dict()}


@dataclass(frozen=True)
class AbsenceDay:
    date: date
    sessions: tuple[Session, ...]

    @property
    def count(self) -> int:
        return len(self.sessions)

    @property
    def is_full_day(self) -> bool:
        return set(self.sessions) == set(Session)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "sessions": [s.value for s in self.sessions],
            "count": self.count,
            "isFullDay": self.is_full_day,
        }


@dataclass(frozen=True)
class SessionRollUp:
    """Read-model row: one class session on one date."""

    class_id: int
    date: date
    session: Session
    present_count: int
    absent_count: int
    absent_student_ids: tuple[int, ...]
    recorded_by: Optional[int] = None
    recorded_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "classId": self.class_id,
            "date": self.date.isoformat(),
            "session": self.session.value,
            "presentCount": self.present_count,
            "absentCount": self.absent_count,
            "absentStudents": list(self.absent_student_ids),
            "recordedBy": self.recorded_by,
            "submittedAt": self.recorded_at.isoformat() if self.recorded_at else None,
        }
