"""
Standard API response format, request helpers and error mapping.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from flask import Flask, g, jsonify, request

from ..core.exceptions import DomainError, NotFoundError, StateConflictError, UnauthorizedError, ValidationError
from ..identity.model import Actor
from ..identity.repository import IdentityRepository
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/", "/api/health"}

_STATUS_BY_ERROR: dict[type[DomainError], int] = {
    ValidationError: 400,
    UnauthorizedError: 403,
    NotFoundError: 404,
    StateConflictError: 409,
}


def success_response(data: Any = None, message: str = "Success") -> dict:
    return {"success": True, "data": data, "message": message}


def error_response(message: str = "Error", error: str = "error", data: Any = None) -> dict:
    return {"success": False, "error": error, "data": data, "message": message}


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def install_identity(app: Flask, identity: IdentityRepository) -> None:
    """Resolve the bearer credential into ``g.actor`` before every request."""

    @app.before_request
    def _resolve_actor():
        if request.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return None
        actor = identity.resolve_token(_bearer_token())
        if actor is None:
            return jsonify(error_response("Authentication required", "unauthenticated")), 401
        g.actor = actor
        return None


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(exc: DomainError):
        status = 400
        for error_type, code in _STATUS_BY_ERROR.items():
            if isinstance(exc, error_type):
                status = code
                break
        logger.info("%s %s -> %s: %s", request.method, request.path, exc.code, exc)
        return jsonify(error_response(str(exc), exc.code)), status


def current_actor() -> Actor:
    return g.actor


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_int(value: Any, field_name: str, *, required: bool = True) -> Optional[int]:
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")


def parse_date_arg(value: Optional[str], field_name: str = "date") -> date:
    if not value:
        raise ValidationError(f"{field_name} is required (YYYY-MM-DD)")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be YYYY-MM-DD")
