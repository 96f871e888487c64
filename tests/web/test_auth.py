import pytest
from flask import Flask, jsonify, request, session

from opsdesk.core.enums import Module, Role
from opsdesk.common.validators import parse_int
from opsdesk.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from opsdesk.web.auth import current_user, handle_errors, module_required, role_required


@pytest.fixture
def client():
    app = Flask(__name__)
    app.secret_key = "test"

    @app.route("/login/<role>")
    def login(role):
        session["user_id"] = 7
        session["name"] = "Tester"
        session["role"] = role
        return jsonify({"ok": True})

    @app.route("/me")
    @module_required(Module.PAYROLL)
    def me():
        user = current_user()
        return jsonify({"user_id": user.user_id, "role": user.role.value})

    @app.route("/admin-only")
    @role_required(Role.ADMIN)
    def admin_only():
        return jsonify({"ok": True})

    @app.route("/fail/<kind>")
    @handle_errors
    def fail(kind):
        errors = {
            "validation": ValidationError("bad input"),
            "forbidden": AuthorizationError("nope"),
            "missing": NotFoundError("gone"),
            "conflict": ConflictError("taken"),
            "boom": RuntimeError("db down"),
        }
        raise errors[kind]

    @app.route("/items")
    @handle_errors
    def items():
        return jsonify({"user_id": parse_int(request.args.get("user_id"), "user id", 7)})

    return app.test_client()


def test_requires_login(client):
    resp = client.get("/me")

    assert resp.status_code == 401
    assert resp.get_json()["success"] is False


def test_module_guard_uses_role_matrix(client):
    client.get("/login/employee")
    assert client.get("/me").status_code == 403

    client.get("/login/manager")
    resp = client.get("/me")
    assert resp.status_code == 200
    assert resp.get_json() == {"user_id": 7, "role": "manager"}


def test_role_guard(client):
    client.get("/login/manager")
    assert client.get("/admin-only").status_code == 403

    client.get("/login/admin")
    assert client.get("/admin-only").status_code == 200


@pytest.mark.parametrize(
    "kind,status,message",
    [
        ("validation", 400, "bad input"),
        ("forbidden", 403, "nope"),
        ("missing", 404, "gone"),
        ("conflict", 409, "taken"),
        ("boom", 500, "Internal error"),
    ],
)
def test_errors_map_to_json(client, kind, status, message):
    resp = client.get(f"/fail/{kind}")

    assert resp.status_code == status
    assert resp.get_json()["message"] == message


def test_malformed_number_is_a_bad_request(client):
    assert client.get("/items?user_id=12").get_json() == {"user_id": 12}
    assert client.get("/items").get_json() == {"user_id": 7}

    resp = client.get("/items?user_id=abc")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid user id"
