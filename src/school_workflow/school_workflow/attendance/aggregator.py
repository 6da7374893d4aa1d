"""Attendance read-model.

Everything here is recomputed from the current facts on each call; there are
no stored counters, so an overwritten fact is reflected immediately.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

from ..common.datetime_utils import month_key
from ..core.constants import DEFAULT_RECENT_DAYS
from ..core.enums import AttendanceStatus, Session
from .model import (
    AbsenceDay,
    AttendanceFact,
    AttendanceStats,
    DailyStatus,
    MonthlyStats,
    SessionRollUp,
)
from .repository import AttendanceRepository

_SESSION_ORDER = {s: i for i, s in enumerate(Session)}


def attendance_percentage(present: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    return (200 * present + total) // (2 * total)


def summarize(facts: Iterable[AttendanceFact]) -> AttendanceStats:
    total = 0
    present = 0
    for f in facts:
        total += 1
        if f.status == AttendanceStatus.PRESENT:
            present += 1
    return AttendanceStats(
        total_sessions=total,
        present_sessions=present,
        absent_sessions=total - present,
        percentage=attendance_percentage(present, total),
    )


class AttendanceAggregator:
    def __init__(self, attendance: AttendanceRepository):
        self._attendance = attendance

    def daily_status(self, class_id: int, on: date) -> DailyStatus:
        taken = {f.session for f in self._attendance.facts_for_class(class_id=int(class_id), on=on)}
        return DailyStatus(
            class_id=int(class_id),
            date=on,
            morning_taken=Session.MORNING in taken,
            afternoon_taken=Session.AFTERNOON in taken,
        )

    def student_stats(
        self,
        student_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AttendanceStats:
        return summarize(self._attendance.facts_for_student(student_id=int(student_id), start=start, end=end))

    def absence_report(
        self,
        student_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[AbsenceDay]:
        """One entry per date with absences, most recent date first."""
        by_date: dict[date, set[Session]] = defaultdict(set)
        for f in self._attendance.facts_for_student(student_id=int(student_id), start=start, end=end):
            if f.status == AttendanceStatus.ABSENT:
                by_date[f.date].add(f.session)

        return [
            AbsenceDay(date=d, sessions=tuple(sorted(sessions, key=_SESSION_ORDER.__getitem__)))
            for d, sessions in sorted(by_date.items(), reverse=True)
        ]

    def monthly_stats(self, student_id: int) -> list[MonthlyStats]:
        by_month: dict[str, list[AttendanceFact]] = defaultdict(list)
        for f in self._attendance.facts_for_student(student_id=int(student_id)):
            by_month[month_key(f.date)].append(f)
        return [MonthlyStats(month=m, stats=summarize(facts)) for m, facts in sorted(by_month.items(), reverse=True)]

    def daily_roll_up(self, on: date) -> list[SessionRollUp]:
        groups: dict[tuple[int, Session], list[AttendanceFact]] = defaultdict(list)
        for f in self._attendance.facts_for_date(on=on):
            groups[(f.class_id, f.session)].append(f)

        out: list[SessionRollUp] = []
        for (class_id, session), facts in sorted(groups.items(), key=lambda kv: (kv[0][0], _SESSION_ORDER[kv[0][1]])):
            absent = sorted(f.student_id for f in facts if f.status == AttendanceStatus.ABSENT)
            recorded = [f for f in facts if f.recorded_at is not None]
            latest = max(recorded, key=lambda f: f.recorded_at) if recorded else None
            out.append(
                SessionRollUp(
                    class_id=class_id,
                    date=on,
                    session=session,
                    present_count=len(facts) - len(absent),
                    absent_count=len(absent),
                    absent_student_ids=tuple(absent),
                    recorded_by=latest.recorded_by if latest else None,
                    recorded_at=latest.recorded_at if latest else None,
                )
            )
        return out

    def student_overview(
        self,
        student_id: int,
        today: date,
        *,
        recent_days: int = DEFAULT_RECENT_DAYS,
    ) -> dict:
        facts = list(self._attendance.facts_for_student(student_id=int(student_id)))

        by_date: dict[date, dict[Session, AttendanceFact]] = defaultdict(dict)
        for f in facts:
            by_date[f.date][f.session] = f

        def _cell(f: Optional[AttendanceFact]) -> Optional[dict]:
            if f is None:
                return None
            return {"status": f.status.value, "classId": f.class_id}

        today_facts = by_date.get(today, {})
        cutoff = today - timedelta(days=int(recent_days))
        recent = [
            {
                "date": d.isoformat(),
                "morning": _cell(sessions.get(Session.MORNING)),
                "afternoon": _cell(sessions.get(Session.AFTERNOON)),
            }
            for d, sessions in sorted(by_date.items(), reverse=True)
            if cutoff < d <= today
        ]

        return {
            "student_id": int(student_id),
            "overallStats": summarize(facts).to_dict(),
            "today": {
                "morning": _cell(today_facts.get(Session.MORNING)),
                "afternoon": _cell(today_facts.get(Session.AFTERNOON)),
            },
            "absentDates": [a.to_dict() for a in self.absence_report(student_id)],
            "monthlyStats": [m.to_dict() for m in self.monthly_stats(student_id)],
            "recentRecords": recent,
        }
