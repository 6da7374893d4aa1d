from __future__ import annotations

import logging
from typing import Protocol

from .model import TransitionEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    """Receives committed transitions. Delivery is handled elsewhere."""

    def dispatch(self, event: TransitionEvent) -> None:
        raise NotImplementedError


class LoggingDispatcher(NotificationDispatcher):
    def dispatch(self, event: TransitionEvent) -> None:
        logger.info(
            "event %s #%s %s: %s -> %s (actor=%s, to_user=%s)",
            event.entity_type.value,
            event.item_id,
            event.action.value,
            event.from_status,
            event.to_status,
            event.actor_id,
            event.to_user_id,
        )
