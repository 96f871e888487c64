from __future__ import annotations

import logging
from functools import wraps

from flask import current_app, jsonify, session

from ..core.enums import Module, Role
from ..core.exceptions import DomainError
from ..users.service import SessionUser, can_access

logger = logging.getLogger(__name__)


def current_user() -> SessionUser:
    return SessionUser(
        user_id=int(session["user_id"]),
        full_name=session.get("name", ""),
        role=Role(session.get("role")),
        dept_id=session.get("dept_id"),
        employee_code=session.get("employee_code"),
    )


def error_response(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return error_response("Please log in to continue", 401)
        return view(*args, **kwargs)

    return wrapper


def role_required(*roles: Role):
    allowed = {r.value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return error_response("Please log in to continue", 401)
            if session.get("role") not in allowed:
                return error_response("You do not have permission", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def module_required(module: Module):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return error_response("Please log in to continue", 401)
            if not can_access(Role(session.get("role")), module):
                return error_response("You do not have permission", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def handle_errors(view):
    """Map domain exceptions raised by services to JSON error responses."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except DomainError as e:
            return error_response(str(e), e.status_code)
        except Exception as e:
            logger.exception("Unhandled error in %s", view.__name__)
            if bool(current_app.config.get("DEBUG", False)):
                return error_response(f"Internal error: {e}", 500)
            return error_response("Internal error", 500)

    return wrapper
