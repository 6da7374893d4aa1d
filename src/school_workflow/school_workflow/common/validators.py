from __future__ import annotations

from typing import Optional

from ..core.exceptions import ValidationError


def _ensure_str(value: object, field_name: str) -> None:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")


def require_non_empty(value: Optional[str], field_name: str) -> str:
    _ensure_str(value, field_name)
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def optional_text(value: Optional[str], field_name: str = "value") -> Optional[str]:
    _ensure_str(value, field_name)
    return (value or "").strip() or None


def optional_str(value: object, field_name: str) -> Optional[str]:
    """Pass a string or None through unchanged; anything else is invalid."""
    _ensure_str(value, field_name)
    return value  # type: ignore[return-value]


def string_list(value: object, field_name: str) -> tuple[str, ...]:
    """A JSON list of strings (e.g. attachment URLs); missing means empty."""
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field_name} must be a list of strings")
    return tuple(value)


def require_positive_int(value: object, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number <= 0:
        raise ValidationError(f"{field_name} must be positive")
    return number
