from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles resolved by the identity provider."""

    PRINCIPAL = "principal"
    MANAGER = "manager"
    TEACHER = "teacher"
    STUDENT = "student"


class Capability(str, Enum):
    """Named permissions derived from a role (plus delegated grants)."""

    MANAGE_ISSUES = "manage_issues"
    REVIEW_REPORTS = "review_reports"
    REVIEW_ACHIEVEMENTS = "review_achievements"
    TAKE_ATTENDANCE = "take_attendance"
    SUBMIT_ACHIEVEMENTS = "submit_achievements"


class EntityType(str, Enum):
    ISSUE = "issue"
    REPORT = "report"
    ACHIEVEMENT = "achievement"


class IssueStatus(str, Enum):
    OPEN = "open"
    FORWARDED = "forwarded"
    RESOLVED = "resolved"


class ReportStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class AchievementStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


STATUS_ENUMS: dict[EntityType, type[Enum]] = {
    EntityType.ISSUE: IssueStatus,
    EntityType.REPORT: ReportStatus,
    EntityType.ACHIEVEMENT: AchievementStatus,
}


class Action(str, Enum):
    FORWARD = "forward"
    RESOLVE = "resolve"
    COMMENT = "comment"
    APPROVE = "approve"
    REJECT = "reject"
    RESUBMIT = "resubmit"


class TimelineAction(str, Enum):
    """Action types written to the audit timeline."""

    CREATED = "created"
    FORWARDED = "forwarded"
    RESOLVED = "resolved"
    COMMENTED = "commented"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESUBMITTED = "resubmitted"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Session(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class LeaderboardPeriod(str, Enum):
    MONTHLY = "monthly"
    OVERALL = "overall"


def parse_status(entity_type: EntityType, value: str) -> Enum:
    """Map a stored status string onto the closed enum of its entity type."""
    return STATUS_ENUMS[entity_type](value)
