from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import month_start, next_month_start, now_local
from ..core.constants import DEFAULT_LEADERBOARD_LIMIT, POINTS_PER_STAR
from ..core.enums import LeaderboardPeriod
from ..core.exceptions import ValidationError
from .model import LedgerEntry, StudentAccounting, stars_for
from .repository import LedgerRepository

logger = logging.getLogger(__name__)


class AccountingLedger:
    """Points ledger plus everything derived from it.

    ``credit`` trusts its caller: the workflow engine only reaches it from a
    ``pending -> approved`` transition, which can commit once per achievement.
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        *,
        points_per_star: int = POINTS_PER_STAR,
        clock: Callable[[], datetime] = now_local,
    ):
        if int(points_per_star) <= 0:
            raise ValueError("points_per_star must be positive")
        self._ledger = ledger
        self._points_per_star = int(points_per_star)
        self._clock = clock

    def credit(self, achievement_id: int, student_id: int, points: int, *, at: Optional[datetime] = None) -> LedgerEntry:
        created_at = at or self._clock()
        entry_id = self._ledger.insert(
            achievement_id=int(achievement_id),
            student_id=int(student_id),
            points=int(points),
            created_at=created_at,
        )
        logger.info("ledger credit: achievement=%s student=%s points=%s", achievement_id, student_id, points)
        return LedgerEntry(
            entry_id=entry_id,
            achievement_id=int(achievement_id),
            student_id=int(student_id),
            points=int(points),
            created_at=created_at,
        )

    def totals(self, student_id: int, as_of: Optional[datetime] = None) -> StudentAccounting:
        as_of = as_of or self._clock()
        # `until` is exclusive, so an entry stamped exactly at as_of still counts.
        until = as_of + timedelta(microseconds=1)
        total = self._ledger.sum_points(student_id=int(student_id), until=until)
        monthly = self._ledger.sum_points(
            student_id=int(student_id),
            since=_at_midnight(month_start(as_of)),
            until=until,
        )
        stars = stars_for(total, self._points_per_star)
        return StudentAccounting(
            student_id=int(student_id),
            total=total,
            monthly=monthly,
            stars=stars,
            points_to_next_star=self._points_per_star - (max(total, 0) % self._points_per_star),
        )

    def transactions(self, student_id: int, *, limit: int = 50) -> list[LedgerEntry]:
        return list(self._ledger.list_for_student(student_id=int(student_id), limit=int(limit)))

    def student_leaderboard(
        self,
        period: LeaderboardPeriod,
        *,
        as_of: Optional[datetime] = None,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> list[dict]:
        since, until = self._period_window(period, as_of)
        overall = {r.student_id: r.points for r in self._ledger.points_by_student()}
        rows = list(self._ledger.points_by_student(since=since, until=until))
        rows.sort(key=lambda r: (-r.points, r.student_id))

        out: list[dict] = []
        for rank, r in enumerate(rows[: int(limit)], start=1):
            out.append(
                {
                    "rank": rank,
                    "student_id": r.student_id,
                    "name": r.name,
                    "class_id": r.class_id,
                    "class_name": r.class_name or "",
                    "points": r.points,
                    "stars": stars_for(overall.get(r.student_id, 0), self._points_per_star),
                }
            )
        return out

    def class_leaderboard(
        self,
        period: LeaderboardPeriod,
        *,
        as_of: Optional[datetime] = None,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> list[dict]:
        since, until = self._period_window(period, as_of)
        rows = list(self._ledger.points_by_class(since=since, until=until))
        rows.sort(key=lambda r: (-r.points, r.class_id))
        return [
            {
                "rank": rank,
                "class_id": r.class_id,
                "class_name": r.class_name,
                "student_count": r.student_count,
                "points": r.points,
            }
            for rank, r in enumerate(rows[: int(limit)], start=1)
        ]

    def _period_window(
        self, period: LeaderboardPeriod, as_of: Optional[datetime]
    ) -> tuple[Optional[datetime], Optional[datetime]]:
        if not isinstance(period, LeaderboardPeriod):
            try:
                period = LeaderboardPeriod(period)
            except ValueError:
                raise ValidationError("type must be 'monthly' or 'overall'")
        if period == LeaderboardPeriod.OVERALL:
            return None, None
        as_of = as_of or self._clock()
        return _at_midnight(month_start(as_of)), _at_midnight(next_month_start(as_of))


def _at_midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)

