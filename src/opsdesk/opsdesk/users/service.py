from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.validators import optional_text, require_min_length, require_non_empty
from ..core.enums import Module, Role
from ..core.exceptions import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)

_EMPLOYEE_MODULES = frozenset({Module.ATTENDANCE, Module.TASKS, Module.CHAT, Module.SUPPORT})


def can_access(role: Role, module: Module) -> bool:
    """Module access matrix for the dashboard sidebar and API guards."""

    if role == Role.ADMIN:
        return True
    if role == Role.MANAGER:
        return module != Module.ADMIN
    return module in _EMPLOYEE_MODULES


def is_privileged(role: Role) -> bool:
    return role in (Role.ADMIN, Role.MANAGER)


@dataclass(frozen=True)
class SessionUser:
    """What we store into Flask session after login."""

    user_id: int
    full_name: str
    role: Role
    dept_id: Optional[int]
    employee_code: Optional[str]


class AuthService:
    """Use case: authenticate user (login)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, username: str, password: str) -> SessionUser:
        user = self._users.get_by_username((username or "").strip())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid username or password")

        try:
            ok = check_password_hash(user.password_hash, password or "")
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False

        if not ok:
            raise AuthenticationError("Invalid username or password")

        logger.info("User %s logged in", user.username)
        return SessionUser(
            user_id=user.user_id,
            full_name=user.full_name,
            role=user.role,
            dept_id=user.dept_id,
            employee_code=user.employee_code,
        )


class UserService:
    """Use case: manage users (admin)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def create_account(
        self,
        *,
        current_role: Role,
        full_name: str,
        username: str,
        password: str,
        role: Role,
        dept_id: Optional[int] = None,
        employee_code: Optional[str] = None,
        monthly_salary: str | Decimal | int = 0,
    ) -> int:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Only admins can create accounts")

        full_name = require_non_empty(full_name, "Full name")
        username = require_non_empty(username, "Username")
        require_min_length(password, "Password", 6)
        employee_code = optional_text(employee_code)

        if role == Role.ADMIN:
            raise ValidationError("Admin accounts cannot be created here")
        if self._users.get_by_username(username):
            raise ValidationError("Username already exists")
        if employee_code and self._users.get_by_employee_code(employee_code):
            raise ValidationError("Employee code already exists")

        try:
            salary = Decimal(str(monthly_salary or 0))
        except InvalidOperation:
            raise ValidationError("Monthly salary must be a number")
        if salary < 0:
            raise ValidationError("Monthly salary must be >= 0")

        user_id = self._users.create_user(
            full_name=full_name,
            username=username,
            password_hash=generate_password_hash(password),
            role=role,
            dept_id=int(dept_id) if dept_id else None,
            employee_code=employee_code,
            monthly_salary=salary,
        )
        logger.info("Created %s account %s (id=%s)", role.value, username, user_id)
        return user_id

    def list_admin_view(self):
        return self._users.list_admin_view()

    def verify_employee(self, employee_code: str) -> User:
        code = require_non_empty(employee_code, "Employee code")
        user = self._users.get_by_employee_code(code)
        if not user or not user.is_active:
            raise NotFoundError("Employee not found")
        return user

    def set_active(self, *, current_role: Role, user_id: int, is_active: bool) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("You do not have permission")

        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.role == Role.ADMIN and not is_active:
            raise ValidationError("Admin accounts cannot be deactivated")
        self._users.set_active(user_id, is_active=is_active)

    def delete_user(self, *, current_role: Role, user_id: int) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("You do not have permission")

        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.role == Role.ADMIN:
            raise ValidationError("Admin accounts cannot be deleted")

        if not self._users.delete_by_id(user_id):
            raise ValidationError("Failed to delete user")
