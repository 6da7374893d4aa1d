from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import EntityType, TimelineAction


@dataclass(frozen=True)
class TimelineEntry:
    """One immutable audit record of an action taken against a work item."""

    entry_id: int
    entity_type: EntityType
    work_item_id: int
    action_type: TimelineAction
    performer_id: int
    created_at: datetime
    to_user_id: Optional[int] = None
    note: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "entity_type": self.entity_type.value,
            "work_item_id": self.work_item_id,
            "action_type": self.action_type.value,
            "performer_id": self.performer_id,
            "to_user_id": self.to_user_id,
            "note": self.note,
            "created_at": self.created_at.isoformat(),
        }
