from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Protocol, Sequence

from ..core.enums import EntityType
from .model import WorkItem

# Columns besides status that a transition may write.
ANNEXED_FIELDS = frozenset({"responsible_id", "review_note", "reviewed_by", "reviewed_at"})


class WorkItemRepository(Protocol):
    def get(self, entity_type: EntityType, item_id: int) -> Optional[WorkItem]:
        raise NotImplementedError

    def create(
        self,
        *,
        entity_type: EntityType,
        status: Enum,
        created_by: int,
        created_at: datetime,
        title: str = "",
        description: str = "",
        category: Optional[str] = None,
        priority: Optional[str] = None,
        responsible_id: Optional[int] = None,
        points: Optional[int] = None,
        student_id: Optional[int] = None,
        task_id: Optional[int] = None,
        attachments: Sequence[str] = (),
    ) -> int:
        raise NotImplementedError

    def create_revision(
        self,
        *,
        previous: WorkItem,
        status: Enum,
        created_by: int,
        created_at: datetime,
        description: str,
        attachments: Sequence[str] = (),
    ) -> Optional[int]:
        """Insert a report superseding ``previous``.

        Returns None when ``previous`` already has a successor.
        """

        raise NotImplementedError

    def find_successor(self, *, report_id: int) -> Optional[int]:
        raise NotImplementedError

    def update_status(
        self,
        *,
        entity_type: EntityType,
        item_id: int,
        expected: Enum,
        new_status: Enum,
        updated_at: datetime,
        changes: Optional[Mapping[str, object]] = None,
    ) -> bool:
        """Conditional write: applies only while the stored status equals ``expected``.

        Returns False when another writer got there first.
        """

        raise NotImplementedError

    def list(
        self,
        *,
        entity_type: EntityType,
        status: Optional[Enum] = None,
        created_by: Optional[int] = None,
        student_id: Optional[int] = None,
        limit: int = 200,
    ) -> Sequence[WorkItem]:
        """Newest first."""

        raise NotImplementedError
