from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, to_decimal
from .model import Department, User
from .repository import DepartmentRepository, UserRepository

_USER_COLUMNS = "user_id, full_name, username, password_hash, role, dept_id, employee_code, monthly_salary, is_active"


def _to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        full_name=row["full_name"],
        username=row["username"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        dept_id=row.get("dept_id"),
        employee_code=row.get("employee_code"),
        monthly_salary=to_decimal(row.get("monthly_salary")),
        is_active=bool(row.get("is_active", True)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_one(self, column: str, value) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE {column}=%s", (value,))
            row = fetchone(cur)
            return _to_user(row) if row else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._get_one("user_id", int(user_id))

    def get_by_username(self, username: str) -> Optional[User]:
        return self._get_one("username", username)

    def get_by_employee_code(self, employee_code: str) -> Optional[User]:
        return self._get_one("employee_code", employee_code)

    def list_active(self) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE is_active=1 ORDER BY full_name")
            return [_to_user(r) for r in fetchall(cur)]

    def get_many(self, user_ids: Sequence[int]) -> dict[int, dict]:
        ids = sorted({int(i) for i in user_ids})
        if not ids:
            return {}
        clause, params = in_clause("u.user_id", ids)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT u.user_id, u.full_name, d.dept_name
                FROM users u
                LEFT JOIN departments d ON d.dept_id = u.dept_id
                WHERE {clause}
                """,
                tuple(params),
            )
            return {
                int(r["user_id"]): {"full_name": r["full_name"], "dept_name": r.get("dept_name")}
                for r in fetchall(cur)
            }

    def create_user(
        self,
        *,
        full_name: str,
        username: str,
        password_hash: str,
        role: Role,
        dept_id: Optional[int],
        employee_code: Optional[str],
        monthly_salary: Decimal,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(full_name, username, password_hash, role, dept_id, employee_code, monthly_salary, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (full_name, username, password_hash, role.value, dept_id, employee_code, monthly_salary),
            )
            return int(cur.lastrowid)

    def delete_by_id(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM users WHERE user_id=%s", (int(user_id),))
            return cur.rowcount > 0

    def set_active(self, user_id: int, *, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET is_active=%s WHERE user_id=%s", (1 if is_active else 0, int(user_id)))
            return cur.rowcount > 0

    def list_admin_view(self) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT u.user_id, u.full_name, u.username, u.role, u.employee_code, u.is_active, d.dept_name
                FROM users u
                LEFT JOIN departments d ON d.dept_id = u.dept_id
                ORDER BY u.user_id DESC
                """
            )
            return [
                {
                    "user_id": r["user_id"],
                    "full_name": r["full_name"],
                    "username": r["username"],
                    "role": r["role"],
                    "employee_code": r.get("employee_code") or "-",
                    "dept_name": r.get("dept_name") or "-",
                    "is_active": bool(r.get("is_active")),
                }
                for r in fetchall(cur)
            ]


class MySQLDepartmentRepository(DepartmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[Department]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT dept_id, dept_name FROM departments ORDER BY dept_name")
            return [Department(dept_id=int(r["dept_id"]), dept_name=r["dept_name"]) for r in fetchall(cur)]
