from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.enums import Action, EntityType, TimelineAction
from ..core.exceptions import NotFoundError, StateConflictError, UnauthorizedError, ValidationError
from ..database.transaction import TransactionManager
from ..events.dispatcher import NotificationDispatcher
from ..events.model import TransitionEvent
from ..identity.model import Actor
from ..ledger.service import AccountingLedger
from ..timeline.recorder import TimelineRecorder
from .model import TransitionPayload, WorkItem
from .policy import POLICIES, Transition, WorkflowPolicy
from .repository import WorkItemRepository

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Executes guarded status transitions for every work item type.

    Checks run in a fixed order and all of them happen before anything is
    written: existence, authorization, payload, then source state. The status
    write, the optional ledger credit and the timeline entry share a single
    commit; the status write is conditional on the status read earlier, so of
    two concurrent transitions from the same state only one can commit.
    """

    def __init__(
        self,
        items: WorkItemRepository,
        timeline: TimelineRecorder,
        ledger: AccountingLedger,
        tx: TransactionManager,
        *,
        dispatcher: Optional[NotificationDispatcher] = None,
        policies: Optional[dict[EntityType, WorkflowPolicy]] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._items = items
        self._timeline = timeline
        self._ledger = ledger
        self._tx = tx
        self._dispatcher = dispatcher
        self._policies = policies or POLICIES
        self._clock = clock

    def transition(
        self,
        entity_type: EntityType,
        entity_id: int,
        action: Action | str,
        actor: Actor,
        payload: Optional[TransitionPayload] = None,
    ) -> WorkItem:
        payload = payload or TransitionPayload()
        policy = self._policies[entity_type]

        item = self._items.get(entity_type, int(entity_id))
        if item is None:
            raise NotFoundError(f"{entity_type.value} {entity_id} not found")

        action = self._coerce_action(policy, action)
        rows = policy.rows_for(action)

        if not rows[0].guard.allows(actor, item):
            logger.info(
                "denied %s on %s #%s for user=%s role=%s",
                action.value, entity_type.value, item.item_id, actor.user_id, actor.role.value,
            )
            raise UnauthorizedError(f"Not permitted to {action.value} this {entity_type.value}")

        self._validate_payload(rows[0], payload)

        transition = policy.resolve(item.status, action)
        if transition is None:
            raise StateConflictError(f"{entity_type.value} {item.item_id} is already {item.status.value}")

        now = self._clock()
        with self._tx.atomic():
            if transition.creates_revision:
                result = self._commit_revision(item, transition, actor, payload, now)
            else:
                result = self._commit_status(item, transition, actor, payload, now)

        target = transition.to_state or item.status
        if transition.creates_revision:
            logger.info(
                "%s #%s %s: %s -> %s, created #%s by user=%s",
                entity_type.value, item.item_id, action.value, item.status.value, target.value,
                result.item_id, actor.user_id,
            )
        else:
            logger.info(
                "%s #%s %s: %s -> %s by user=%s",
                entity_type.value, item.item_id, action.value, item.status.value, target.value, actor.user_id,
            )
        self._emit(item, result, transition, actor, payload, now)
        return result

    def _coerce_action(self, policy: WorkflowPolicy, action: Action | str) -> Action:
        try:
            action = Action(action)
        except ValueError:
            raise ValidationError(f"Unknown action: {action}")
        if action not in policy.actions:
            raise ValidationError(f"{action.value} is not an action of {policy.entity_type.value}")
        return action

    @staticmethod
    def _validate_payload(transition: Transition, payload: TransitionPayload) -> None:
        for name in transition.requires:
            value = getattr(payload, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"{name} is required to {transition.action.value}")

    def _commit_status(
        self,
        item: WorkItem,
        transition: Transition,
        actor: Actor,
        payload: TransitionPayload,
        now: datetime,
    ) -> WorkItem:
        new_status = transition.to_state or item.status
        changes: dict[str, object] = {}
        note: Optional[str] = None
        to_user_id: Optional[int] = None

        if transition.action == Action.FORWARD:
            changes["responsible_id"] = payload.to_user_id
            to_user_id = payload.to_user_id
            note = _clean(payload.note)
        elif transition.action == Action.COMMENT:
            note = _clean(payload.comment)
        elif transition.action in (Action.APPROVE, Action.REJECT):
            note = _clean(payload.review_note)
            changes.update(review_note=note, reviewed_by=actor.user_id, reviewed_at=now)
        else:
            note = _clean(payload.note)

        updated = self._items.update_status(
            entity_type=item.entity_type,
            item_id=item.item_id,
            expected=item.status,
            new_status=new_status,
            updated_at=now,
            changes=changes,
        )
        if not updated:
            raise StateConflictError(f"{item.entity_type.value} {item.item_id} was changed by someone else")

        if transition.credits_ledger:
            self._ledger.credit(item.item_id, int(item.student_id), int(item.points or 0), at=now)

        self._timeline.append(
            item.entity_type,
            item.item_id,
            transition.timeline_action,
            actor.user_id,
            note=note,
            to_user_id=to_user_id,
            at=now,
        )
        return self._reload(item)

    def _commit_revision(
        self,
        item: WorkItem,
        transition: Transition,
        actor: Actor,
        payload: TransitionPayload,
        now: datetime,
    ) -> WorkItem:
        policy = self._policies[item.entity_type]
        new_id = self._items.create_revision(
            previous=item,
            status=policy.initial_state,
            created_by=actor.user_id,
            created_at=now,
            description=_clean(payload.description) or "",
            attachments=payload.attachments,
        )
        if new_id is None:
            raise StateConflictError(f"{item.entity_type.value} {item.item_id} was already resubmitted")

        self._timeline.append(
            item.entity_type,
            item.item_id,
            transition.timeline_action,
            actor.user_id,
            note=f"Superseded by report #{new_id}",
            at=now,
        )
        self._timeline.append(
            item.entity_type,
            new_id,
            TimelineAction.CREATED,
            actor.user_id,
            note=f"Revision of report #{item.item_id}",
            at=now,
        )
        created = self._items.get(item.entity_type, new_id)
        if created is None:
            raise RuntimeError(f"report {new_id} vanished inside its own transaction")
        return created

    def _reload(self, item: WorkItem) -> WorkItem:
        fresh = self._items.get(item.entity_type, item.item_id)
        if fresh is None:
            raise NotFoundError(f"{item.entity_type.value} {item.item_id} not found")
        return fresh

    def _emit(
        self,
        before: WorkItem,
        after: WorkItem,
        transition: Transition,
        actor: Actor,
        payload: TransitionPayload,
        now: datetime,
    ) -> None:
        if self._dispatcher is None:
            return
        event = TransitionEvent(
            entity_type=before.entity_type,
            item_id=before.item_id,
            action=transition.action,
            from_status=before.status.value,
            to_status=(transition.to_state or before.status).value,
            actor_id=actor.user_id,
            occurred_at=now,
            to_user_id=payload.to_user_id if transition.action == Action.FORWARD else None,
            created_item_id=after.item_id if transition.creates_revision else None,
        )
        try:
            self._dispatcher.dispatch(event)
        except Exception:
            # Already committed; delivery is not part of the transition.
            logger.exception("dispatch failed for %s #%s %s", before.entity_type.value, before.item_id, transition.action.value)


def _clean(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None
