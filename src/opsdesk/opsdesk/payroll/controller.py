from __future__ import annotations

from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import now_local, parse_optional_date
from ..common.validators import parse_int
from ..container import Container
from ..core.enums import Module, PaymentMethod, PayrollStatus
from ..core.exceptions import ValidationError
from ..web.auth import current_user, handle_errors, module_required
from .export import XLSX_MIMETYPE, to_excel
from .model import PayrollFilters


def _enum_or_none(enum_cls, value, field_name: str):
    if not value or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}")


def _required_date(value, field_name: str):
    d = parse_optional_date(value, field_name)
    if d is None:
        raise ValidationError(f"{field_name} is required")
    return d


def register(app: Flask, container: Container) -> None:
    @app.route("/payroll", endpoint="payroll_list")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_list():
        args = request.args
        filters = PayrollFilters(
            employee_id=parse_int(args.get("employee_id"), "employee id"),
            status=_enum_or_none(PayrollStatus, args.get("status"), "status"),
            payment_method=_enum_or_none(PaymentMethod, args.get("payment_method"), "payment method"),
            date_from=parse_optional_date(args.get("date_from"), "From date"),
            date_to=parse_optional_date(args.get("date_to"), "To date"),
        )
        return jsonify({"records": container.payroll_service.list(filters)})

    @app.route("/payroll/stats", endpoint="payroll_stats")
    @module_required(Module.PAYROLL)
    def payroll_stats():
        stats = container.payroll_service.stats()
        return jsonify({k: str(v) if not isinstance(v, int) else v for k, v in stats.items()})

    @app.route("/payroll", methods=["POST"], endpoint="payroll_create")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_create():
        data = request.get_json(silent=True) or {}
        payroll_id = container.payroll_service.create(
            employee_id=parse_int(data.get("employee_id"), "employee id", 0),
            pay_period_start=_required_date(data.get("pay_period_start"), "Pay period start"),
            pay_period_end=_required_date(data.get("pay_period_end"), "Pay period end"),
            base_salary=data.get("base_salary"),
            gross_pay=data.get("gross_pay"),
            deductions_total=data.get("deductions_total"),
            net_pay=data.get("net_pay"),
            payment_method=_enum_or_none(PaymentMethod, data.get("payment_method"), "payment method"),
            notes=data.get("notes"),
            created_by=current_user().user_id,
        )
        return jsonify({"success": True, "payroll_id": payroll_id}), 201

    @app.route("/payroll/generate", methods=["POST"], endpoint="payroll_generate")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_generate():
        data = request.get_json(silent=True) or {}
        payroll_id = container.payroll_service.generate_from_attendance(
            employee_id=parse_int(data.get("employee_id"), "employee id", 0),
            pay_period_start=_required_date(data.get("pay_period_start"), "Pay period start"),
            pay_period_end=_required_date(data.get("pay_period_end"), "Pay period end"),
            deductions_total=data.get("deductions_total", 0),
            created_by=current_user().user_id,
        )
        return jsonify({"success": True, "payroll_id": payroll_id}), 201

    @app.route("/payroll/<int:payroll_id>", methods=["PUT"], endpoint="payroll_update")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_update(payroll_id: int):
        data = request.get_json(silent=True) or {}
        container.payroll_service.update(
            payroll_id,
            base_salary=data.get("base_salary"),
            gross_pay=data.get("gross_pay"),
            deductions_total=data.get("deductions_total"),
            net_pay=data.get("net_pay"),
            payment_method=_enum_or_none(PaymentMethod, data.get("payment_method"), "payment method"),
            notes=data.get("notes"),
        )
        return jsonify({"success": True})

    @app.route("/payroll/<int:payroll_id>", methods=["DELETE"], endpoint="payroll_delete")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_delete(payroll_id: int):
        container.payroll_service.delete(payroll_id)
        return jsonify({"success": True})

    @app.route("/payroll/<int:payroll_id>/processed", methods=["POST"], endpoint="payroll_processed")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_processed(payroll_id: int):
        container.payroll_service.mark_processed(payroll_id)
        return jsonify({"success": True})

    @app.route("/payroll/<int:payroll_id>/paid", methods=["POST"], endpoint="payroll_paid")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_paid(payroll_id: int):
        data = request.get_json(silent=True) or {}
        container.payroll_service.mark_paid(payroll_id, data.get("transaction_ref"))
        return jsonify({"success": True})

    @app.route("/payroll/attendance-report", endpoint="payroll_attendance_report")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_attendance_report():
        data = container.payroll_report_service.build_attendance_report(
            start=parse_optional_date(request.args.get("start"), "Start date"),
            end=parse_optional_date(request.args.get("end"), "End date"),
            dept_id=parse_int(request.args.get("dept_id"), "dept id"),
        )
        return jsonify({"rows": data.rows, "summary": data.summary})

    @app.route("/payroll/attendance-report.xlsx", endpoint="payroll_attendance_report_xlsx")
    @module_required(Module.PAYROLL)
    @handle_errors
    def payroll_attendance_report_xlsx():
        start = parse_optional_date(request.args.get("start"), "Start date")
        end = parse_optional_date(request.args.get("end"), "End date")
        data = container.payroll_report_service.build_attendance_report(start=start, end=end)
        output = to_excel({"Attendance": data.rows, "Summary": data.summary})
        filename = f"attendance_hours_{now_local().strftime('%Y%m%d')}.xlsx"
        return send_file(output, download_name=filename, as_attachment=True, mimetype=XLSX_MIMETYPE)
