from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..common.validators import optional_str, string_list
from ..core.enums import EntityType
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class WorkItem:
    """Generic envelope for Issue / Report / Achievement.

    ``status`` is always a member of the entity type's own status enum.
    """

    item_id: int
    entity_type: EntityType
    status: Enum
    created_by: int
    created_at: datetime
    title: str = ""
    description: str = ""
    category: Optional[str] = None
    priority: Optional[str] = None
    responsible_id: Optional[int] = None
    points: Optional[int] = None
    student_id: Optional[int] = None
    task_id: Optional[int] = None
    previous_report_id: Optional[int] = None
    review_note: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    attachments: tuple[str, ...] = field(default_factory=tuple)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.item_id,
            "type": self.entity_type.value,
            "status": self.status.value,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "responsible_user_id": self.responsible_id,
            "points": self.points,
            "student_id": self.student_id,
            "task_id": self.task_id,
            "previous_report_id": self.previous_report_id,
            "review_note": self.review_note,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "attachments": list(self.attachments),
        }


@dataclass(frozen=True)
class TransitionPayload:
    """Action-specific input; which fields are required is declared by the policy."""

    to_user_id: Optional[int] = None
    note: Optional[str] = None
    comment: Optional[str] = None
    review_note: Optional[str] = None
    description: Optional[str] = None
    attachments: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: Optional[dict]) -> "TransitionPayload":
        data = data or {}
        to_user = data.get("to_user_id")
        try:
            to_user_id = int(to_user) if to_user not in (None, "") else None
        except (TypeError, ValueError):
            raise ValidationError("to_user_id must be an integer")
        return cls(
            to_user_id=to_user_id,
            note=optional_str(data.get("note"), "note"),
            comment=optional_str(data.get("comment"), "comment"),
            review_note=optional_str(data.get("review_note"), "review_note"),
            description=optional_str(data.get("description"), "description"),
            attachments=string_list(data.get("attachments"), "attachments"),
        )
