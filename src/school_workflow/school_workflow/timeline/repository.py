from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import EntityType, TimelineAction
from .model import TimelineEntry


class TimelineRepository(Protocol):
    """Append-only store: there is deliberately no update or delete."""

    def insert(
        self,
        *,
        entity_type: EntityType,
        work_item_id: int,
        action_type: TimelineAction,
        performer_id: int,
        created_at: datetime,
        to_user_id: Optional[int] = None,
        note: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def latest_created_at(self, *, entity_type: EntityType, work_item_id: int) -> Optional[datetime]:
        raise NotImplementedError

    def list_for(self, *, entity_type: EntityType, work_item_id: int) -> Sequence[TimelineEntry]:
        """Entries ordered by (created_at, entry_id) ascending."""

        raise NotImplementedError
