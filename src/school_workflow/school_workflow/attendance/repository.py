from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import Session
from .model import AttendanceFact


class AttendanceRepository(Protocol):
    def upsert_facts(self, facts: Sequence[AttendanceFact]) -> int:
        """Write facts, overwriting any existing (student, date, session) key."""

        raise NotImplementedError

    def facts_for_class(
        self,
        *,
        class_id: int,
        on: date,
        session: Optional[Session] = None,
    ) -> Sequence[AttendanceFact]:
        raise NotImplementedError

    def facts_for_date(self, *, on: date) -> Sequence[AttendanceFact]:
        raise NotImplementedError

    def facts_for_student(
        self,
        *,
        student_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceFact]:
        """Facts with ``start <= date <= end`` (open bounds when None)."""

        raise NotImplementedError


class RosterRepository(Protocol):
    """Read-only view of class membership (master data is managed elsewhere)."""

    def class_exists(self, class_id: int) -> bool:
        raise NotImplementedError

    def student_ids_for_class(self, class_id: int) -> Sequence[int]:
        raise NotImplementedError
