from __future__ import annotations

import itertools
import logging
import threading

import pytest

from src.school_workflow.school_workflow.core.enums import (
    AchievementStatus,
    Action,
    EntityType,
    IssueStatus,
    ReportStatus,
    Role,
    TimelineAction,
)
from src.school_workflow.school_workflow.core.exceptions import (
    NotFoundError,
    StateConflictError,
    UnauthorizedError,
    ValidationError,
)
from src.school_workflow.school_workflow.identity.model import Actor
from src.school_workflow.school_workflow.workflow import engine
from src.school_workflow.school_workflow.workflow.model import TransitionPayload


def _achievement(container, student, points):
    return container.work_item_service.submit_achievement(actor=student, title="Science fair", points=points)


def _report(container, teacher):
    return container.work_item_service.submit_report(actor=teacher, description="Weekly lesson report")


def _issue(container, teacher, priority="high"):
    return container.work_item_service.raise_issue(actor=teacher, title="Projector broken", priority=priority)


def test_approving_achievements_credits_ledger_and_stars(container, ledger_repo, principal, student):
    first = _achievement(container, student, 15)
    approved = container.workflow_engine.transition(EntityType.ACHIEVEMENT, first.item_id, Action.APPROVE, principal)

    assert approved.status == AchievementStatus.APPROVED
    assert approved.reviewed_by == principal.user_id
    assert len(ledger_repo.entries) == 1
    assert container.ledger.totals(student.user_id).total == 15
    assert container.ledger.totals(student.user_id).stars == 0

    second = _achievement(container, student, 10)
    container.workflow_engine.transition(EntityType.ACHIEVEMENT, second.item_id, "approve", principal)

    totals = container.ledger.totals(student.user_id)
    assert totals.total == 25
    assert totals.stars == 1
    assert totals.points_to_next_star == 15


def test_second_approval_conflicts_and_does_not_credit_twice(container, ledger_repo, principal, manager, student):
    item = _achievement(container, student, 15)
    container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, principal)

    with pytest.raises(StateConflictError):
        container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, manager)

    assert len(ledger_repo.entries) == 1


def test_concurrent_approvals_commit_exactly_once(container, items_repo, ledger_repo, timeline_repo, principal, manager, student):
    item = _achievement(container, student, 15)

    barrier = threading.Barrier(2)
    calls = itertools.count()

    def _hold_first_reads():
        if next(calls) < 2:
            barrier.wait(timeout=5)

    items_repo.on_get = _hold_first_reads

    results: list[object] = []

    def _approve(actor):
        try:
            results.append(
                container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, actor)
            )
        except StateConflictError as e:
            results.append(e)

    threads = [threading.Thread(target=_approve, args=(a,)) for a in (principal, manager)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    conflicts = [r for r in results if isinstance(r, StateConflictError)]
    assert len(results) == 2
    assert len(conflicts) == 1
    assert len(ledger_repo.entries) == 1
    approvals = [
        e for e in timeline_repo.entries
        if e.work_item_id == item.item_id and e.action_type == TimelineAction.APPROVED
    ]
    assert len(approvals) == 1


@pytest.mark.parametrize("entity", ["report", "achievement"])
def test_reject_without_review_note_is_validation_error(container, items_repo, principal, teacher, student, entity):
    if entity == "report":
        item = _report(container, teacher)
    else:
        item = _achievement(container, student, 5)

    with pytest.raises(ValidationError):
        container.workflow_engine.transition(
            item.entity_type, item.item_id, Action.REJECT, principal, TransitionPayload(review_note="   ")
        )

    assert items_repo.get(item.entity_type, item.item_id).status == item.status


def test_reject_achievement_records_review_note(container, ledger_repo, reviewer_teacher, student):
    item = _achievement(container, student, 5)
    rejected = container.workflow_engine.transition(
        EntityType.ACHIEVEMENT, item.item_id, Action.REJECT, reviewer_teacher,
        TransitionPayload(review_note="No certificate attached"),
    )
    assert rejected.status == AchievementStatus.REJECTED
    assert rejected.review_note == "No certificate attached"
    assert ledger_repo.entries == []


@pytest.mark.parametrize("action", [Action.FORWARD, Action.RESOLVE])
def test_teacher_cannot_forward_or_resolve_issue(container, teacher, action):
    issue = _issue(container, teacher)
    with pytest.raises(UnauthorizedError):
        container.workflow_engine.transition(
            EntityType.ISSUE, issue.item_id, action, teacher, TransitionPayload(to_user_id=2)
        )


def test_principal_forward_then_resolve_builds_timeline(container, principal, teacher, dispatcher):
    issue = _issue(container, teacher, priority="high")

    forwarded = container.workflow_engine.transition(
        EntityType.ISSUE, issue.item_id, Action.FORWARD, principal,
        TransitionPayload(to_user_id=2, note="check wiring"),
    )
    assert forwarded.status == IssueStatus.FORWARDED
    assert forwarded.responsible_id == 2

    resolved = container.workflow_engine.transition(EntityType.ISSUE, issue.item_id, Action.RESOLVE, principal)
    assert resolved.status == IssueStatus.RESOLVED

    history = container.timeline.history(EntityType.ISSUE, issue.item_id)
    assert [e.action_type for e in history] == [
        TimelineAction.CREATED,
        TimelineAction.FORWARDED,
        TimelineAction.RESOLVED,
    ]
    assert history[1].to_user_id == 2
    assert history[1].note == "check wiring"
    assert [e.action for e in dispatcher.events] == [Action.FORWARD, Action.RESOLVE]
    assert dispatcher.events[0].to_user_id == 2


def test_resolved_issue_cannot_be_forwarded(container, principal, teacher):
    issue = _issue(container, teacher)
    container.workflow_engine.transition(EntityType.ISSUE, issue.item_id, Action.RESOLVE, principal)

    with pytest.raises(StateConflictError):
        container.workflow_engine.transition(
            EntityType.ISSUE, issue.item_id, Action.FORWARD, principal, TransitionPayload(to_user_id=2)
        )


def test_forward_requires_target_user(container, principal, teacher):
    issue = _issue(container, teacher)
    with pytest.raises(ValidationError):
        container.workflow_engine.transition(EntityType.ISSUE, issue.item_id, Action.FORWARD, principal)


def test_forwarded_user_may_comment(container, principal, teacher, timeline_repo):
    issue = _issue(container, principal)
    container.workflow_engine.transition(
        EntityType.ISSUE, issue.item_id, Action.FORWARD, principal, TransitionPayload(to_user_id=teacher.user_id)
    )

    commented = container.workflow_engine.transition(
        EntityType.ISSUE, issue.item_id, Action.COMMENT, teacher, TransitionPayload(comment="On it")
    )
    assert commented.status == IssueStatus.FORWARDED
    assert timeline_repo.entries[-1].action_type == TimelineAction.COMMENTED
    assert timeline_repo.entries[-1].note == "On it"


def test_unrelated_teacher_cannot_comment_on_issue(container, principal):
    issue = _issue(container, principal)
    outsider = Actor.for_role(99, Role.TEACHER)
    with pytest.raises(UnauthorizedError):
        container.workflow_engine.transition(
            EntityType.ISSUE, issue.item_id, Action.COMMENT, outsider, TransitionPayload(comment="hi")
        )


def test_unknown_item_is_not_found(container, principal):
    with pytest.raises(NotFoundError):
        container.workflow_engine.transition(EntityType.ACHIEVEMENT, 404, Action.APPROVE, principal)


def test_action_not_declared_for_type_is_validation_error(container, principal, student):
    item = _achievement(container, student, 5)
    with pytest.raises(ValidationError):
        container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.FORWARD, principal)
    with pytest.raises(ValidationError):
        container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, "escalate", principal)


def test_plain_teacher_cannot_review_achievements(container, teacher, student):
    item = _achievement(container, student, 5)
    with pytest.raises(UnauthorizedError):
        container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, teacher)


def test_delegated_teacher_can_approve_achievement(container, reviewer_teacher, student):
    item = _achievement(container, student, 5)
    approved = container.workflow_engine.transition(
        EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, reviewer_teacher
    )
    assert approved.status == AchievementStatus.APPROVED


def test_report_reject_then_resubmit_links_revision(container, principal, teacher):
    report = _report(container, teacher)
    container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.REJECT, principal,
        TransitionPayload(review_note="insufficient detail"),
    )

    revision = container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.RESUBMIT, teacher,
        TransitionPayload(description="Weekly lesson report, with attendance figures"),
    )

    assert revision.item_id != report.item_id
    assert revision.previous_report_id == report.item_id
    assert revision.status == ReportStatus.SUBMITTED
    chain = container.work_item_service.revision_chain(revision.item_id, actor=principal)
    assert [r.item_id for r in chain] == [report.item_id, revision.item_id]

    old_history = container.timeline.history(EntityType.REPORT, report.item_id)
    assert old_history[-1].action_type == TimelineAction.RESUBMITTED
    assert str(revision.item_id) in old_history[-1].note
    new_history = container.timeline.history(EntityType.REPORT, revision.item_id)
    assert [e.action_type for e in new_history] == [TimelineAction.CREATED]


def test_rejected_report_can_be_resubmitted_once(container, principal, teacher):
    report = _report(container, teacher)
    container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.REJECT, principal, TransitionPayload(review_note="redo")
    )
    container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.RESUBMIT, teacher, TransitionPayload(description="v2")
    )

    with pytest.raises(StateConflictError):
        container.workflow_engine.transition(
            EntityType.REPORT, report.item_id, Action.RESUBMIT, teacher, TransitionPayload(description="v3")
        )


def test_only_creator_may_resubmit(container, principal, teacher):
    report = _report(container, teacher)
    container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.REJECT, principal, TransitionPayload(review_note="redo")
    )
    with pytest.raises(UnauthorizedError):
        container.workflow_engine.transition(
            EntityType.REPORT, report.item_id, Action.RESUBMIT, principal, TransitionPayload(description="v2")
        )


def test_submitted_report_cannot_be_resubmitted(container, teacher):
    report = _report(container, teacher)
    with pytest.raises(StateConflictError):
        container.workflow_engine.transition(
            EntityType.REPORT, report.item_id, Action.RESUBMIT, teacher, TransitionPayload(description="v2")
        )


def test_comment_on_approved_report_keeps_status(container, principal, teacher):
    report = _report(container, teacher)
    container.workflow_engine.transition(EntityType.REPORT, report.item_id, Action.APPROVE, principal)
    commented = container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.COMMENT, teacher, TransitionPayload(comment="Thanks")
    )
    assert commented.status == ReportStatus.APPROVED


def test_failed_ledger_write_rolls_back_status_and_timeline(container, items_repo, ledger_repo, timeline_repo, tx, principal, student):
    item = _achievement(container, student, 15)
    entries_before = len(timeline_repo.entries)
    ledger_repo.fail_on_insert = True

    with pytest.raises(RuntimeError):
        container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, principal)

    assert items_repo.get(EntityType.ACHIEVEMENT, item.item_id).status == AchievementStatus.PENDING
    assert len(timeline_repo.entries) == entries_before
    assert ledger_repo.entries == []
    assert tx.rollbacks == 1


def test_dispatch_failure_does_not_undo_transition(container, items_repo, dispatcher, principal, student):
    item = _achievement(container, student, 15)
    dispatcher.fail = True

    approved = container.workflow_engine.transition(EntityType.ACHIEVEMENT, item.item_id, Action.APPROVE, principal)

    assert approved.status == AchievementStatus.APPROVED
    assert items_repo.get(EntityType.ACHIEVEMENT, item.item_id).status == AchievementStatus.APPROVED


def test_denied_attempt_changes_nothing(container, timeline_repo, dispatcher, teacher):
    issue = _issue(container, teacher)
    before = list(timeline_repo.entries)
    with pytest.raises(UnauthorizedError):
        container.workflow_engine.transition(EntityType.ISSUE, issue.item_id, Action.RESOLVE, teacher)
    assert timeline_repo.entries == before
    assert dispatcher.events == []


def test_resubmit_log_names_old_target_and_created_report(container, principal, teacher, caplog):
    report = _report(container, teacher)
    container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.REJECT, principal, TransitionPayload(review_note="redo")
    )
    caplog.set_level(logging.INFO, logger=engine.logger.name)

    revision = container.workflow_engine.transition(
        EntityType.REPORT, report.item_id, Action.RESUBMIT, teacher, TransitionPayload(description="v2")
    )

    messages = [r.getMessage() for r in caplog.records if r.name == engine.logger.name]
    assert f"report #{report.item_id} resubmit: rejected -> rejected, created #{revision.item_id} by user=3" in messages
