from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Iterable

from ..common.datetime_utils import now_local
from ..core.enums import AttendanceStatus, Capability, Session
from ..core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from ..identity.model import Actor
from .aggregator import AttendanceAggregator
from .model import AttendanceFact, SessionRollUp
from .repository import AttendanceRepository, RosterRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    """Write path for attendance facts."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        roster: RosterRepository,
        aggregator: AttendanceAggregator,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._roster = roster
        self._aggregator = aggregator
        self._clock = clock

    @staticmethod
    def _parse_session(value: Session | str) -> Session:
        try:
            return Session(value)
        except ValueError:
            raise ValidationError("Session must be morning or afternoon")

    def take_attendance(
        self,
        *,
        actor: Actor,
        class_id: int,
        on: date,
        session: Session | str,
        absent_student_ids: Iterable[int] = (),
    ) -> SessionRollUp:
        """Record one class session: listed students absent, the rest of the roster present.

        Re-taking the same session overwrites the earlier facts.
        """
        if not actor.can(Capability.TAKE_ATTENDANCE):
            raise UnauthorizedError("Not permitted to take attendance")

        session = self._parse_session(session)
        if not self._roster.class_exists(int(class_id)):
            raise NotFoundError(f"class {class_id} not found")

        roster = [int(s) for s in self._roster.student_ids_for_class(int(class_id))]
        if not roster:
            raise ValidationError("Class has no students")

        absent = {int(s) for s in absent_student_ids}
        strangers = absent - set(roster)
        if strangers:
            raise ValidationError(f"Students not in class: {sorted(strangers)}")

        now = self._clock()
        facts = [
            AttendanceFact(
                student_id=student_id,
                class_id=int(class_id),
                date=on,
                session=session,
                status=AttendanceStatus.ABSENT if student_id in absent else AttendanceStatus.PRESENT,
                recorded_by=actor.user_id,
                recorded_at=now,
            )
            for student_id in roster
        ]
        self._attendance.upsert_facts(facts)
        logger.info(
            "attendance class=%s date=%s session=%s absent=%d/%d by user=%s",
            class_id, on.isoformat(), session.value, len(absent), len(roster), actor.user_id,
        )

        for row in self._aggregator.daily_roll_up(on):
            if row.class_id == int(class_id) and row.session == session:
                return row
        raise NotFoundError(f"attendance for class {class_id} on {on.isoformat()} not found")

    def session_taken(self, *, class_id: int, on: date, session: Session | str) -> bool:
        session = self._parse_session(session)
        status = self._aggregator.daily_status(int(class_id), on)
        return status.morning_taken if session == Session.MORNING else status.afternoon_taken
