from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import ClassPointsRow, LedgerEntry, StudentPointsRow


class LedgerRepository(Protocol):
    """Append-only points ledger. No update or delete is exposed."""

    def insert(self, *, achievement_id: int, student_id: int, points: int, created_at: datetime) -> int:
        raise NotImplementedError

    def sum_points(
        self,
        *,
        student_id: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        """Sum of entries with ``since <= created_at < until`` (open bounds when None)."""

        raise NotImplementedError

    def list_for_student(self, *, student_id: int, limit: int = 200) -> Sequence[LedgerEntry]:
        """Newest first."""

        raise NotImplementedError

    def points_by_student(
        self,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[StudentPointsRow]:
        """One row per known student, zero when no entry falls in the window."""

        raise NotImplementedError

    def points_by_class(
        self,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Sequence[ClassPointsRow]:
        raise NotImplementedError
