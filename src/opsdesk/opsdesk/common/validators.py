from __future__ import annotations

import re
from typing import Optional

from ..core.exceptions import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    if value is None or len(value) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters")
    return value


def require_max_length(value: str, field_name: str, max_len: int) -> str:
    if len(value) > max_len:
        raise ValidationError(f"{field_name} must be at most {max_len} characters")
    return value


def require_positive(value, field_name: str, *, allow_zero: bool = False):
    if value is None:
        raise ValidationError(f"{field_name} is required")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{field_name} must be {'>= 0' if allow_zero else '> 0'}")
    return value


def require_in_range(value, field_name: str, low, high):
    if value is None or value < low or value > high:
        raise ValidationError(f"{field_name} must be between {low} and {high}")
    return value


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))


def optional_text(value: Optional[str]) -> Optional[str]:
    """Strip and collapse blank strings to None."""
    return (value or "").strip() or None


def parse_int(value, field_name: str, default: Optional[int] = None) -> Optional[int]:
    """Parse a request value as int. Blank gives ``default``, garbage raises ValidationError."""
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}")


def parse_float(value, field_name: str) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}")
