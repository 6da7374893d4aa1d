from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.web import current_actor, json_body, parse_int, success_response
from ..core.constants import DEFAULT_LEADERBOARD_LIMIT, DEFAULT_LIST_LIMIT
from ..core.enums import Action, EntityType, LeaderboardPeriod, Role
from ..core.exceptions import UnauthorizedError
from ..container import Container
from .model import TransitionPayload


def register(app: Flask, container: Container) -> None:
    def _transition(entity_type: EntityType, item_id: int, action: Action, message: str):
        payload = TransitionPayload.from_json(json_body())
        item = container.workflow_engine.transition(entity_type, item_id, action, current_actor(), payload)
        return jsonify(success_response(item.to_dict(), message)), 200

    def _list(entity_type: EntityType):
        limit = parse_int(request.args.get("limit"), "limit", required=False) or DEFAULT_LIST_LIMIT
        items = container.work_item_service.list_items(
            entity_type,
            actor=current_actor(),
            status=request.args.get("status"),
            limit=limit,
        )
        return jsonify(success_response([i.to_dict() for i in items])), 200

    def _detail(entity_type: EntityType, item_id: int):
        data = container.work_item_service.detail(entity_type, item_id, actor=current_actor())
        return jsonify(success_response(data)), 200

    # -------- Issues --------
    @app.route("/issues", methods=["POST"], endpoint="create_issue")
    def create_issue():
        data = json_body()
        item = container.work_item_service.raise_issue(
            actor=current_actor(),
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=data.get("category"),
            priority=data.get("priority") or "medium",
            attachments=data.get("attachments"),
        )
        return jsonify(success_response(item.to_dict(), "Issue created")), 201

    @app.route("/issues", methods=["GET"], endpoint="list_issues")
    def list_issues():
        return _list(EntityType.ISSUE)

    @app.route("/issues/<int:issue_id>", methods=["GET"], endpoint="issue_detail")
    def issue_detail(issue_id: int):
        return _detail(EntityType.ISSUE, issue_id)

    @app.route("/issues/<int:issue_id>/forward", methods=["POST"], endpoint="forward_issue")
    def forward_issue(issue_id: int):
        return _transition(EntityType.ISSUE, issue_id, Action.FORWARD, "Issue forwarded")

    @app.route("/issues/<int:issue_id>/resolve", methods=["POST"], endpoint="resolve_issue")
    def resolve_issue(issue_id: int):
        return _transition(EntityType.ISSUE, issue_id, Action.RESOLVE, "Issue resolved")

    @app.route("/issues/<int:issue_id>/comment", methods=["POST"], endpoint="comment_issue")
    def comment_issue(issue_id: int):
        return _transition(EntityType.ISSUE, issue_id, Action.COMMENT, "Comment added")

    # -------- Reports --------
    @app.route("/reports", methods=["POST"], endpoint="create_report")
    def create_report():
        data = json_body()
        item = container.work_item_service.submit_report(
            actor=current_actor(),
            description=data.get("description", ""),
            title=data.get("title", ""),
            task_id=parse_int(data.get("task_id"), "task_id", required=False),
            reviewer_id=parse_int(data.get("reviewer_id"), "reviewer_id", required=False),
            attachments=data.get("attachments"),
        )
        return jsonify(success_response(item.to_dict(), "Report submitted")), 201

    @app.route("/reports", methods=["GET"], endpoint="list_reports")
    def list_reports():
        return _list(EntityType.REPORT)

    @app.route("/reports/<int:report_id>", methods=["GET"], endpoint="report_detail")
    def report_detail(report_id: int):
        return _detail(EntityType.REPORT, report_id)

    @app.route("/reports/<int:report_id>/approve", methods=["POST"], endpoint="approve_report")
    def approve_report(report_id: int):
        return _transition(EntityType.REPORT, report_id, Action.APPROVE, "Report approved")

    @app.route("/reports/<int:report_id>/reject", methods=["POST"], endpoint="reject_report")
    def reject_report(report_id: int):
        return _transition(EntityType.REPORT, report_id, Action.REJECT, "Report rejected")

    @app.route("/reports/<int:report_id>/comment", methods=["POST"], endpoint="comment_report")
    def comment_report(report_id: int):
        return _transition(EntityType.REPORT, report_id, Action.COMMENT, "Comment added")

    @app.route("/reports/<int:report_id>/resubmit", methods=["POST"], endpoint="resubmit_report")
    def resubmit_report(report_id: int):
        payload = TransitionPayload.from_json(json_body())
        item = container.workflow_engine.transition(
            EntityType.REPORT, report_id, Action.RESUBMIT, current_actor(), payload
        )
        return jsonify(success_response(item.to_dict(), "Report resubmitted")), 201

    # -------- Achievements --------
    @app.route("/achievements", methods=["POST"], endpoint="create_achievement")
    def create_achievement():
        data = json_body()
        item = container.work_item_service.submit_achievement(
            actor=current_actor(),
            title=data.get("title", ""),
            points=data.get("points"),
            description=data.get("description", ""),
            category=data.get("category"),
            attachments=data.get("attachments"),
        )
        return jsonify(success_response(item.to_dict(), "Achievement submitted")), 201

    @app.route("/achievements", methods=["GET"], endpoint="list_achievements")
    def list_achievements():
        return _list(EntityType.ACHIEVEMENT)

    @app.route("/achievements/<int:achievement_id>", methods=["GET"], endpoint="achievement_detail")
    def achievement_detail(achievement_id: int):
        return _detail(EntityType.ACHIEVEMENT, achievement_id)

    @app.route("/achievements/<int:achievement_id>/approve", methods=["POST"], endpoint="approve_achievement")
    def approve_achievement(achievement_id: int):
        return _transition(EntityType.ACHIEVEMENT, achievement_id, Action.APPROVE, "Achievement approved")

    @app.route("/achievements/<int:achievement_id>/reject", methods=["POST"], endpoint="reject_achievement")
    def reject_achievement(achievement_id: int):
        return _transition(EntityType.ACHIEVEMENT, achievement_id, Action.REJECT, "Achievement rejected")

    # -------- Points --------
    def _ensure_own_points(student_id: int) -> None:
        actor = current_actor()
        if actor.role == Role.STUDENT and actor.user_id != student_id:
            raise UnauthorizedError("Students can only view their own points")

    @app.route("/students/<int:student_id>/points", methods=["GET"], endpoint="student_points")
    def student_points(student_id: int):
        _ensure_own_points(student_id)
        totals = container.ledger.totals(student_id)
        return jsonify(success_response(totals.to_dict())), 200

    @app.route("/students/<int:student_id>/transactions", methods=["GET"], endpoint="student_transactions")
    def student_transactions(student_id: int):
        _ensure_own_points(student_id)
        limit = parse_int(request.args.get("limit"), "limit", required=False) or DEFAULT_LIST_LIMIT
        entries = container.ledger.transactions(student_id, limit=limit)
        return jsonify(success_response([e.to_dict() for e in entries])), 200

    def _period() -> LeaderboardPeriod | str:
        return request.args.get("type") or LeaderboardPeriod.MONTHLY.value

    @app.route("/leaderboard/students", methods=["GET"], endpoint="student_leaderboard")
    def student_leaderboard():
        limit = parse_int(request.args.get("limit"), "limit", required=False) or DEFAULT_LEADERBOARD_LIMIT
        rows = container.ledger.student_leaderboard(_period(), limit=limit)
        return jsonify(success_response(rows)), 200

    @app.route("/leaderboard/classes", methods=["GET"], endpoint="class_leaderboard")
    def class_leaderboard():
        limit = parse_int(request.args.get("limit"), "limit", required=False) or DEFAULT_LEADERBOARD_LIMIT
        rows = container.ledger.class_leaderboard(_period(), limit=limit)
        return jsonify(success_response(rows)), 200
