from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_non_empty, require_positive_int, string_list
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import Capability, EntityType, Priority, Role, TimelineAction, parse_status
from ..core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from ..database.transaction import TransactionManager
from ..identity.model import Actor
from ..timeline.model import TimelineEntry
from ..timeline.recorder import TimelineRecorder
from .model import WorkItem
from .policy import POLICIES
from .repository import WorkItemRepository

logger = logging.getLogger(__name__)

_STAFF_ROLES = {Role.PRINCIPAL, Role.MANAGER, Role.TEACHER}


class WorkItemService:
    """Intake and read side of the work items.

    Status changes never go through here; see ``WorkflowEngine``.
    """

    def __init__(
        self,
        items: WorkItemRepository,
        timeline: TimelineRecorder,
        tx: TransactionManager,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._items = items
        self._timeline = timeline
        self._tx = tx
        self._clock = clock

    # -------- Intake --------
    def raise_issue(
        self,
        *,
        actor: Actor,
        title: str,
        description: str = "",
        category: Optional[str] = None,
        priority: str = Priority.MEDIUM.value,
        attachments: Optional[Sequence[str]] = (),
    ) -> WorkItem:
        if actor.role not in _STAFF_ROLES:
            raise UnauthorizedError("Only staff can raise issues")

        title = require_non_empty(title, "Title")
        try:
            priority = Priority(optional_text(priority, "Priority") or Priority.MEDIUM.value)
        except ValueError:
            raise ValidationError("Priority must be low, medium or high")

        return self._create(
            actor,
            entity_type=EntityType.ISSUE,
            title=title,
            description=optional_text(description, "Description") or "",
            category=optional_text(category, "Category"),
            priority=priority.value,
            attachments=attachments,
        )

    def submit_report(
        self,
        *,
        actor: Actor,
        description: str,
        task_id: Optional[int] = None,
        reviewer_id: Optional[int] = None,
        title: str = "",
        attachments: Optional[Sequence[str]] = (),
    ) -> WorkItem:
        if actor.role not in _STAFF_ROLES:
            raise UnauthorizedError("Only staff can submit reports")

        description = require_non_empty(description, "Description")
        return self._create(
            actor,
            entity_type=EntityType.REPORT,
            title=optional_text(title, "Title") or "",
            description=description,
            task_id=int(task_id) if task_id else None,
            responsible_id=int(reviewer_id) if reviewer_id else None,
            attachments=attachments,
        )

    def submit_achievement(
        self,
        *,
        actor: Actor,
        title: str,
        points: int,
        description: str = "",
        category: Optional[str] = None,
        attachments: Optional[Sequence[str]] = (),
    ) -> WorkItem:
        if not actor.can(Capability.SUBMIT_ACHIEVEMENTS):
            raise UnauthorizedError("Only students can submit achievements")

        title = require_non_empty(title, "Title")
        points = require_positive_int(points, "Points")
        return self._create(
            actor,
            entity_type=EntityType.ACHIEVEMENT,
            title=title,
            description=optional_text(description, "Description") or "",
            category=optional_text(category, "Category"),
            points=points,
            student_id=actor.user_id,
            attachments=attachments,
        )

    def _create(self, actor: Actor, *, entity_type: EntityType, attachments: Optional[Sequence[str]] = (), **fields) -> WorkItem:
        now = self._clock()
        attachments = string_list(attachments, "attachments")
        initial = POLICIES[entity_type].initial_state
        with self._tx.atomic():
            item_id = self._items.create(
                entity_type=entity_type,
                status=initial,
                created_by=actor.user_id,
                created_at=now,
                attachments=attachments,
                **fields,
            )
            self._timeline.append(entity_type, item_id, TimelineAction.CREATED, actor.user_id, at=now)
            item = self._items.get(entity_type, item_id)

        if item is None:
            raise NotFoundError(f"{entity_type.value} {item_id} not found")
        logger.info("%s #%s created by user=%s", entity_type.value, item_id, actor.user_id)
        return item

    # -------- Reads --------
    def get(self, entity_type: EntityType, item_id: int, *, actor: Actor) -> WorkItem:
        item = self._items.get(entity_type, int(item_id))
        if item is None:
            raise NotFoundError(f"{entity_type.value} {item_id} not found")
        self._ensure_can_read(actor, item)
        return item

    def timeline(self, entity_type: EntityType, item_id: int, *, actor: Actor) -> tuple[TimelineEntry, ...]:
        self.get(entity_type, item_id, actor=actor)
        return self._timeline.history(entity_type, int(item_id))

    def revision_chain(self, report_id: int, *, actor: Actor) -> list[WorkItem]:
        """All versions of a report, oldest first, ending with ``report_id``."""
        current = self.get(EntityType.REPORT, report_id, actor=actor)
        chain = [current]
        seen = {current.item_id}
        while current.previous_report_id is not None:
            previous = self._items.get(EntityType.REPORT, current.previous_report_id)
            if previous is None or previous.item_id in seen:
                break
            seen.add(previous.item_id)
            chain.append(previous)
            current = previous
        chain.reverse()
        return chain

    def detail(self, entity_type: EntityType, item_id: int, *, actor: Actor) -> dict:
        item = self.get(entity_type, item_id, actor=actor)
        out = {
            entity_type.value: item.to_dict(),
            "timeline": [e.to_dict() for e in self._timeline.history(entity_type, item.item_id)],
        }
        if entity_type == EntityType.REPORT:
            out["history"] = [r.to_dict() for r in self.revision_chain(item.item_id, actor=actor)]
            out["superseded_by"] = self._items.find_successor(report_id=item.item_id)
        return out

    def list_items(
        self,
        entity_type: EntityType,
        *,
        actor: Actor,
        status: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[WorkItem]:
        status_filter: Optional[Enum] = None
        if status:
            try:
                status_filter = parse_status(entity_type, status)
            except ValueError:
                raise ValidationError(f"Unknown {entity_type.value} status: {status}")

        if actor.role == Role.STUDENT:
            if entity_type != EntityType.ACHIEVEMENT:
                raise UnauthorizedError("Students can only list their own achievements")
            return list(
                self._items.list(entity_type=entity_type, status=status_filter, student_id=actor.user_id, limit=limit)
            )
        return list(self._items.list(entity_type=entity_type, status=status_filter, limit=limit))

    @staticmethod
    def _ensure_can_read(actor: Actor, item: WorkItem) -> None:
        if actor.role != Role.STUDENT:
            return
        if item.entity_type == EntityType.ACHIEVEMENT and item.student_id == actor.user_id:
            return
        raise UnauthorizedError("Not permitted to view this item")
