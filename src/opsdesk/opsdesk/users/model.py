from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Plain data object (no DB access code).
    """

    user_id: int
    full_name: str
    username: str
    password_hash: str
    role: Role
    dept_id: Optional[int]
    employee_code: Optional[str] = None
    monthly_salary: Decimal = Decimal("0")
    is_active: bool = True


@dataclass(frozen=True)
class Department:
    dept_id: int
    dept_name: str
