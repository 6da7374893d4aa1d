"""Per-entity transition tables.

Each row is ``(from_state, action, guard) -> to_state``. A status that has no
row for an action cannot take that action; terminal states have no
status-changing rows at all. Report resubmission leaves the rejected report
untouched and creates a new one instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..core.enums import (
    AchievementStatus,
    Action,
    Capability,
    EntityType,
    IssueStatus,
    ReportStatus,
    TimelineAction,
)
from ..identity.model import Actor
from .model import WorkItem


class Relation(str, Enum):
    """How an actor may be related to a work item."""

    CREATOR = "creator"
    RESPONSIBLE = "responsible"


@dataclass(frozen=True)
class Guard:
    """Who may fire a transition: a capability holder or a related user."""

    name: str
    description: str
    capability: Optional[Capability] = None
    relations: frozenset[Relation] = frozenset()

    def allows(self, actor: Actor, item: WorkItem) -> bool:
        if self.capability is not None and actor.can(self.capability):
            return True
        if Relation.CREATOR in self.relations and item.created_by == actor.user_id:
            return True
        if (
            Relation.RESPONSIBLE in self.relations
            and item.responsible_id is not None
            and item.responsible_id == actor.user_id
        ):
            return True
        return False


@dataclass(frozen=True)
class Transition:
    from_state: Enum
    action: Action
    guard: Guard
    timeline_action: TimelineAction
    to_state: Optional[Enum] = None  # None keeps the current status
    requires: tuple[str, ...] = ()
    credits_ledger: bool = False
    creates_revision: bool = False


@dataclass(frozen=True)
class WorkflowPolicy:
    entity_type: EntityType
    initial_state: Enum
    states: tuple[Enum, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[Enum, ...] = ()
    _by_key: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.entity_type.value}: initial state not in states")
        by_key: dict[tuple[Enum, Action], Transition] = {}
        for t in self.transitions:
            if t.from_state not in self.states or (t.to_state is not None and t.to_state not in self.states):
                raise ValueError(f"{self.entity_type.value}: transition {t.action.value} references unknown state")
            if t.from_state in self.terminal_states and t.to_state not in (None, t.from_state):
                raise ValueError(f"{self.entity_type.value}: terminal state {t.from_state.value} cannot change")
            key = (t.from_state, t.action)
            if key in by_key:
                raise ValueError(f"{self.entity_type.value}: duplicate row for {key}")
            by_key[key] = t
        object.__setattr__(self, "_by_key", by_key)

    @property
    def actions(self) -> frozenset[Action]:
        return frozenset(t.action for t in self.transitions)

    def rows_for(self, action: Action) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.action == action)

    def resolve(self, status: Enum, action: Action) -> Optional[Transition]:
        return self._by_key.get((status, action))


_STAFF_MANAGEMENT = Guard(
    name="principal_or_manager",
    description="Principal or manager",
    capability=Capability.MANAGE_ISSUES,
)

_ISSUE_COMMENTER = Guard(
    name="issue_participant",
    description="Creator, current responsible user, principal or manager",
    capability=Capability.MANAGE_ISSUES,
    relations=frozenset({Relation.CREATOR, Relation.RESPONSIBLE}),
)

_REPORT_REVIEWER = Guard(
    name="report_reviewer",
    description="Principal or manager",
    capability=Capability.REVIEW_REPORTS,
)

_REPORT_COMMENTER = Guard(
    name="report_participant",
    description="Creator, current reviewer, principal or manager",
    capability=Capability.REVIEW_REPORTS,
    relations=frozenset({Relation.CREATOR, Relation.RESPONSIBLE}),
)

_REPORT_CREATOR = Guard(
    name="report_creator",
    description="The teacher who submitted the report",
    relations=frozenset({Relation.CREATOR}),
)

_ACHIEVEMENT_REVIEWER = Guard(
    name="achievement_reviewer",
    description="Principal, manager or a teacher with delegated review permission",
    capability=Capability.REVIEW_ACHIEVEMENTS,
)


ISSUE_POLICY = WorkflowPolicy(
    entity_type=EntityType.ISSUE,
    initial_state=IssueStatus.OPEN,
    states=tuple(IssueStatus),
    terminal_states=(IssueStatus.RESOLVED,),
    transitions=(
        Transition(IssueStatus.OPEN, Action.FORWARD, _STAFF_MANAGEMENT, TimelineAction.FORWARDED,
                   to_state=IssueStatus.FORWARDED, requires=("to_user_id",)),
        Transition(IssueStatus.FORWARDED, Action.FORWARD, _STAFF_MANAGEMENT, TimelineAction.FORWARDED,
                   to_state=IssueStatus.FORWARDED, requires=("to_user_id",)),
        Transition(IssueStatus.OPEN, Action.RESOLVE, _STAFF_MANAGEMENT, TimelineAction.RESOLVED,
                   to_state=IssueStatus.RESOLVED),
        Transition(IssueStatus.FORWARDED, Action.RESOLVE, _STAFF_MANAGEMENT, TimelineAction.RESOLVED,
                   to_state=IssueStatus.RESOLVED),
        Transition(IssueStatus.OPEN, Action.COMMENT, _ISSUE_COMMENTER, TimelineAction.COMMENTED,
                   requires=("comment",)),
        Transition(IssueStatus.FORWARDED, Action.COMMENT, _ISSUE_COMMENTER, TimelineAction.COMMENTED,
                   requires=("comment",)),
    ),
)

REPORT_POLICY = WorkflowPolicy(
    entity_type=EntityType.REPORT,
    initial_state=ReportStatus.SUBMITTED,
    states=tuple(ReportStatus),
    terminal_states=(ReportStatus.APPROVED, ReportStatus.REJECTED),
    transitions=(
        Transition(ReportStatus.SUBMITTED, Action.APPROVE, _REPORT_REVIEWER, TimelineAction.APPROVED,
                   to_state=ReportStatus.APPROVED),
        Transition(ReportStatus.SUBMITTED, Action.REJECT, _REPORT_REVIEWER, TimelineAction.REJECTED,
                   to_state=ReportStatus.REJECTED, requires=("review_note",)),
        Transition(ReportStatus.SUBMITTED, Action.COMMENT, _REPORT_COMMENTER, TimelineAction.COMMENTED,
                   requires=("comment",)),
        Transition(ReportStatus.APPROVED, Action.COMMENT, _REPORT_COMMENTER, TimelineAction.COMMENTED,
                   requires=("comment",)),
        Transition(ReportStatus.REJECTED, Action.COMMENT, _REPORT_COMMENTER, TimelineAction.COMMENTED,
                   requires=("comment",)),
        Transition(ReportStatus.REJECTED, Action.RESUBMIT, _REPORT_CREATOR, TimelineAction.RESUBMITTED,
                   requires=("description",), creates_revision=True),
    ),
)

ACHIEVEMENT_POLICY = WorkflowPolicy(
    entity_type=EntityType.ACHIEVEMENT,
    initial_state=AchievementStatus.PENDING,
    states=tuple(AchievementStatus),
    terminal_states=(AchievementStatus.APPROVED, AchievementStatus.REJECTED),
    transitions=(
        Transition(AchievementStatus.PENDING, Action.APPROVE, _ACHIEVEMENT_REVIEWER, TimelineAction.APPROVED,
                   to_state=AchievementStatus.APPROVED, credits_ledger=True),
        Transition(AchievementStatus.PENDING, Action.REJECT, _ACHIEVEMENT_REVIEWER, TimelineAction.REJECTED,
                   to_state=AchievementStatus.REJECTED, requires=("review_note",)),
    ),
)

POLICIES: dict[EntityType, WorkflowPolicy] = {
    EntityType.ISSUE: ISSUE_POLICY,
    EntityType.REPORT: REPORT_POLICY,
    EntityType.ACHIEVEMENT: ACHIEVEMENT_POLICY,
}
