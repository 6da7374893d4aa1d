from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Action, EntityType


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted after a transition has been committed."""

    entity_type: EntityType
    item_id: int
    action: Action
    from_status: str
    to_status: str
    actor_id: int
    occurred_at: datetime
    to_user_id: Optional[int] = None
    created_item_id: Optional[int] = None
