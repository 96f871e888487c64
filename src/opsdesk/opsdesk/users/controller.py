from __future__ import annotations

from datetime import timedelta

from flask import Flask, jsonify, request, session

from ..core.constants import DEFAULT_SESSION_DAYS
from ..core.enums import Module, Role
from ..core.exceptions import ValidationError
from ..container import Container
from .service import can_access
from ..web.auth import current_user, handle_errors, login_required, role_required


def register(app: Flask, container: Container) -> None:
    @app.route("/login", methods=["POST"], endpoint="login")
    @handle_errors
    def login():
        data = request.get_json(silent=True) or request.form
        s_user = container.auth_service.authenticate(data.get("username", ""), data.get("password", ""))

        session.permanent = bool(data.get("remember_me"))
        app.permanent_session_lifetime = timedelta(days=DEFAULT_SESSION_DAYS)

        session["user_id"] = s_user.user_id
        session["name"] = s_user.full_name
        session["role"] = s_user.role.value
        session["dept_id"] = s_user.dept_id
        session["employee_code"] = s_user.employee_code

        return jsonify({"success": True, "user_id": s_user.user_id, "role": s_user.role.value})

    @app.route("/logout", methods=["POST"], endpoint="logout")
    def logout():
        session.clear()
        return jsonify({"success": True})

    @app.route("/api/me", endpoint="me")
    @login_required
    def me():
        user = current_user()
        return jsonify(
            {
                "user_id": user.user_id,
                "full_name": user.full_name,
                "role": user.role.value,
                "modules": [m.value for m in Module if can_access(user.role, m)],
            }
        )

    @app.route("/api/employees/verify", methods=["POST"], endpoint="verify_employee")
    @login_required
    @handle_errors
    def verify_employee():
        data = request.get_json(silent=True) or {}
        user = container.user_service.verify_employee(data.get("employee_code", ""))
        return jsonify({"success": True, "user_id": user.user_id, "full_name": user.full_name})

    @app.route("/admin/users", endpoint="admin_users")
    @role_required(Role.ADMIN)
    def admin_users():
        return jsonify({"users": list(container.user_service.list_admin_view())})

    @app.route("/admin/departments", endpoint="admin_departments")
    @role_required(Role.ADMIN)
    def admin_departments():
        return jsonify({"departments": [{"dept_id": d.dept_id, "dept_name": d.dept_name} for d in container.departments_repo.list_all()]})

    @app.route("/admin/users", methods=["POST"], endpoint="add_user")
    @role_required(Role.ADMIN)
    @handle_errors
    def add_user():
        data = request.get_json(silent=True) or {}
        try:
            role = Role(data.get("role", Role.EMPLOYEE.value))
        except ValueError:
            raise ValidationError("Invalid account role")

        user_id = container.user_service.create_account(
            current_role=current_user().role,
            full_name=data.get("full_name", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            role=role,
            dept_id=data.get("dept_id"),
            employee_code=data.get("employee_code"),
            monthly_salary=data.get("monthly_salary", 0),
        )
        return jsonify({"success": True, "user_id": user_id}), 201

    @app.route("/admin/users/<int:user_id>/active", methods=["POST"], endpoint="set_user_active")
    @role_required(Role.ADMIN)
    @handle_errors
    def set_user_active(user_id: int):
        data = request.get_json(silent=True) or {}
        container.user_service.set_active(
            current_role=current_user().role, user_id=user_id, is_active=bool(data.get("is_active", True))
        )
        return jsonify({"success": True})

    @app.route("/admin/users/<int:user_id>", methods=["DELETE"], endpoint="delete_user")
    @role_required(Role.ADMIN)
    @handle_errors
    def delete_user(user_id: int):
        container.user_service.delete_user(current_role=current_user().role, user_id=user_id)
        return jsonify({"success": True})
