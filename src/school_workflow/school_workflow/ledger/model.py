from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class LedgerEntry:
    """Immutable points credit. A reversal would be a new negative entry."""

    entry_id: int
    achievement_id: int
    student_id: int
    points: int
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "achievement_id": self.achievement_id,
            "student_id": self.student_id,
            "points": self.points,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class StudentAccounting:
    """Derived totals; always recomputed from the ledger, never stored."""

    student_id: int
    total: int
    monthly: int
    stars: int
    points_to_next_star: int

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "totalPoints": self.total,
            "monthlyPoints": self.monthly,
            "stars": self.stars,
            "pointsToNextStar": self.points_to_next_star,
        }


@dataclass(frozen=True)
class StudentPointsRow:
    """Read-model row: a student's summed points for some window."""

    student_id: int
    name: str
    class_id: Optional[int]
    class_name: Optional[str]
    points: int


@dataclass(frozen=True)
class ClassPointsRow:
    class_id: int
    class_name: str
    student_count: int
    points: int


def stars_for(total: int, points_per_star: int) -> int:
    if total <= 0:
        return 0
    return total // points_per_star
