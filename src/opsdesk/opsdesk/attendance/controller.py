from __future__ import annotations

import csv
import io

import qrcode
from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import now_local, parse_optional_date
from ..common.validators import parse_float, parse_int
from ..container import Container
from ..core.enums import Module, Role
from ..users.service import is_privileged
from ..web.auth import current_user, handle_errors, module_required, role_required
from .model import LocationInput
from .selfie import save_selfie

REPORT_FIELDS = [
    "work_date",
    "user_id",
    "full_name",
    "username",
    "dept_name",
    "check_in",
    "check_out",
    "status",
    "worked_hours",
    "location_verified",
    "notes",
]


def register(app: Flask, container: Container) -> None:
    def _location_from_request() -> LocationInput:
        data = request.get_json(silent=True) or request.form
        selfie_path = None
        upload = request.files.get("selfie")
        if upload:
            selfie_path = save_selfie(
                upload.stream,
                upload_dir=app.config["UPLOAD_FOLDER"],
                user_id=current_user().user_id,
                now=now_local(),
            )
        return LocationInput(
            ip_address=request.headers.get("X-Forwarded-For", request.remote_addr or "").split(",")[0].strip() or None,
            latitude=parse_float(data.get("latitude"), "latitude"),
            longitude=parse_float(data.get("longitude"), "longitude"),
            selfie_path=selfie_path,
        )

    @app.route("/attendance/checkin", methods=["POST"], endpoint="checkin")
    @module_required(Module.ATTENDANCE)
    @handle_errors
    def checkin():
        attendance_id = container.attendance_service.check_in(current_user().user_id, _location_from_request())
        return jsonify({"success": True, "attendance_id": attendance_id})

    @app.route("/attendance/checkout", methods=["POST"], endpoint="checkout")
    @module_required(Module.ATTENDANCE)
    @handle_errors
    def checkout():
        container.attendance_service.check_out(current_user().user_id)
        return jsonify({"success": True})

    @app.route("/api/attendance/qr", methods=["POST"], endpoint="api_attendance_qr")
    @module_required(Module.ATTENDANCE)
    @handle_errors
    def api_attendance_qr():
        """Check in or out from a scanned office QR code, depending on today's state."""
        data = request.get_json(silent=True) or {}
        action = container.attendance_service.check_in_or_out(
            current_user().user_id,
            token=data.get("qr_code", ""),
            expected_token=app.config["QR_TOKEN"],
            location=_location_from_request(),
        )
        return jsonify({"success": True, "action": action})

    @app.route("/attendance/qr.png", endpoint="attendance_qr_image")
    @role_required(Role.ADMIN, Role.MANAGER)
    def attendance_qr_image():
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=2,
        )
        qr.add_data(app.config["QR_TOKEN"])
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        buf.seek(0)
        return send_file(buf, mimetype="image/png")

    @app.route("/attendance/today", endpoint="attendance_today")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def attendance_today():
        day = parse_optional_date(request.args.get("date"), "Date")
        return jsonify(container.attendance_service.today_overview(day))

    @app.route("/attendance/me", endpoint="attendance_me")
    @module_required(Module.ATTENDANCE)
    def attendance_me():
        today = now_local().date()
        record = container.attendance_service.today_record(current_user().user_id, today)
        return jsonify({"date": today.isoformat(), "record": record})

    @app.route("/attendance/history", endpoint="attendance_history")
    @module_required(Module.ATTENDANCE)
    @handle_errors
    def attendance_history():
        user = current_user()
        target = parse_int(request.args.get("user_id"), "user id", user.user_id)
        container.attendance_service.ensure_self_or_privileged(
            actor_id=user.user_id, target_id=target, privileged=is_privileged(user.role)
        )
        limit = parse_int(request.args.get("limit"), "limit", 30)
        return jsonify({"history": container.attendance_service.history(target, limit=limit)})

    @app.route("/attendance/summary", endpoint="attendance_summary")
    @module_required(Module.ATTENDANCE)
    @handle_errors
    def attendance_summary():
        user = current_user()
        target = parse_int(request.args.get("user_id"), "user id", user.user_id)
        container.attendance_service.ensure_self_or_privileged(
            actor_id=user.user_id, target_id=target, privileged=is_privileged(user.role)
        )
        today = now_local().date()
        start = parse_optional_date(request.args.get("start"), "Start date") or today.replace(day=1)
        end = parse_optional_date(request.args.get("end"), "End date") or today
        return jsonify(container.attendance_service.summary(target, start, end))

    @app.route("/attendance/report.csv", endpoint="attendance_report_csv")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def attendance_report_csv():
        start = parse_optional_date(request.args.get("start"), "Start date")
        end = parse_optional_date(request.args.get("end"), "End date")
        data = container.payroll_report_service.build_attendance_report(
            start=start, end=end, dept_id=parse_int(request.args.get("dept_id"), "dept id")
        )

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=REPORT_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for row in data.rows:
            writer.writerow(row)

        filename = f"attendance_report_{now_local().strftime('%Y%m%d')}.csv"
        return app.response_class(
            out.getvalue().encode("utf-8-sig"),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
