from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.web import current_actor, json_body, parse_date_arg, parse_int, success_response
from ..core.constants import DEFAULT_RECENT_DAYS
from ..core.enums import Role
from ..core.exceptions import UnauthorizedError, ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    def _session_fields(data: dict):
        class_id = parse_int(data.get("class_id"), "class_id")
        on = parse_date_arg(data.get("date"))
        session = data.get("session")
        if not session:
            raise ValidationError("session is required")
        return class_id, on, session

    @app.route("/attendance", methods=["POST"], endpoint="take_attendance")
    def take_attendance():
        data = json_body()
        class_id, on, session = _session_fields(data)
        absent = data.get("absent_students") or []
        if not isinstance(absent, list):
            raise ValidationError("absent_students must be a list")
        roll_up = container.attendance_service.take_attendance(
            actor=current_actor(),
            class_id=class_id,
            on=on,
            session=session,
            absent_student_ids=[parse_int(s, "absent_students") for s in absent],
        )
        return jsonify(success_response(roll_up.to_dict(), "Attendance saved")), 200

    @app.route("/attendance/check", methods=["POST"], endpoint="check_attendance")
    def check_attendance():
        class_id, on, session = _session_fields(json_body())
        taken = container.attendance_service.session_taken(class_id=class_id, on=on, session=session)
        return jsonify(success_response({"exists": taken})), 200

    @app.route("/attendance", methods=["GET"], endpoint="attendance_by_date")
    def attendance_by_date():
        on = parse_date_arg(request.args.get("date"))
        rows = container.attendance_aggregator.daily_roll_up(on)
        return jsonify(success_response([r.to_dict() for r in rows])), 200

    @app.route("/attendance/daily-status", methods=["GET"], endpoint="attendance_daily_status")
    def attendance_daily_status():
        class_id = parse_int(request.args.get("class_id"), "class_id")
        on = parse_date_arg(request.args.get("date"))
        status = container.attendance_aggregator.daily_status(class_id, on)
        return jsonify(success_response(status.to_dict())), 200

    @app.route("/students/<int:student_id>/attendance", methods=["GET"], endpoint="student_attendance")
    def student_attendance(student_id: int):
        actor = current_actor()
        if actor.role == Role.STUDENT and actor.user_id != student_id:
            raise UnauthorizedError("Students can only view their own attendance")
        recent_days = parse_int(request.args.get("days"), "days", required=False) or DEFAULT_RECENT_DAYS
        today = container.clock().date()
        overview = container.attendance_aggregator.student_overview(student_id, today, recent_days=recent_days)

        start = parse_date_arg(request.args["from"], "from") if request.args.get("from") else None
        end = parse_date_arg(request.args["to"], "to") if request.args.get("to") else None
        if start is not None or end is not None:
            if start is not None and end is not None and start > end:
                raise ValidationError("from must not be after to")
            stats = container.attendance_aggregator.student_stats(student_id, start, end)
            overview["rangeStats"] = {
                "from": start.isoformat() if start else None,
                "to": end.isoformat() if end else None,
                **stats.to_dict(),
            }
        return jsonify(success_response(overview)), 200
