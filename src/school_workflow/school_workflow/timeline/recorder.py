from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.enums import EntityType, TimelineAction
from .model import TimelineEntry
from .repository import TimelineRepository


class TimelineRecorder:
    """Append-only, per-item ordered log of actions.

    ``created_at`` never precedes the latest entry of the same item, so a
    history read back by time is also the order of appends.
    """

    def __init__(self, timeline: TimelineRepository, *, clock: Callable[[], datetime] = now_local):
        self._timeline = timeline
        self._clock = clock

    def append(
        self,
        entity_type: EntityType,
        entity_id: int,
        action_type: TimelineAction,
        performer_id: int,
        note: Optional[str] = None,
        to_user_id: Optional[int] = None,
        *,
        at: Optional[datetime] = None,
    ) -> TimelineEntry:
        created_at = at or self._clock()
        latest = self._timeline.latest_created_at(entity_type=entity_type, work_item_id=int(entity_id))
        if latest is not None and latest > created_at:
            created_at = latest

        entry_id = self._timeline.insert(
            entity_type=entity_type,
            work_item_id=int(entity_id),
            action_type=action_type,
            performer_id=int(performer_id),
            to_user_id=to_user_id,
            note=note,
            created_at=created_at,
        )
        return TimelineEntry(
            entry_id=entry_id,
            entity_type=entity_type,
            work_item_id=int(entity_id),
            action_type=action_type,
            performer_id=int(performer_id),
            to_user_id=to_user_id,
            note=note,
            created_at=created_at,
        )

    def history(self, entity_type: EntityType, entity_id: int) -> tuple[TimelineEntry, ...]:
        return tuple(self._timeline.list_for(entity_type=entity_type, work_item_id=int(entity_id)))
