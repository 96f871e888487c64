from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_REPORT_DAYS
from ..core.enums import PaymentMethod, PayrollStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..users.repository import UserRepository
from .calculator.base import PayrollCalculator
from .calculator.standard_calculator import StandardPayrollCalculator
from .model import PayrollFilters, PayrollRecord
from .repository import PayrollRepository

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    PayrollStatus.PENDING: {PayrollStatus.PROCESSED, PayrollStatus.PAID},
    PayrollStatus.PROCESSED: {PayrollStatus.PAID},
    PayrollStatus.PAID: set(),
}


def _money(value, field_name: str) -> Decimal:
    try:
        amount = Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return amount


def working_days(start: date, end: date) -> int:
    """Monday-to-Friday days in [start, end]."""
    days = 0
    cur = start
    while cur <= end:
        if cur.weekday() < 5:
            days += 1
        cur += timedelta(days=1)
    return days


@dataclass(frozen=True)
class PayrollAmounts:
    base_salary: Decimal
    gross_pay: Decimal
    deductions_total: Decimal
    net_pay: Decimal

    @classmethod
    def parse(cls, *, base_salary, gross_pay, deductions_total, net_pay) -> "PayrollAmounts":
        amounts = cls(
            base_salary=_money(base_salary, "Base salary"),
            gross_pay=_money(gross_pay, "Gross pay"),
            deductions_total=_money(deductions_total, "Deductions"),
            net_pay=_money(net_pay, "Net pay"),
        )
        expected = amounts.gross_pay - amounts.deductions_total
        if abs(expected - amounts.net_pay) >= Decimal("0.01"):
            raise ValidationError("Net pay must equal gross pay minus deductions")
        return amounts


class PayrollService:
    def __init__(
        self,
        payroll: PayrollRepository,
        users: UserRepository,
        attendance: AttendanceRepository,
        *,
        calculator: Optional[PayrollCalculator] = None,
    ):
        self._payroll = payroll
        self._users = users
        self._attendance = attendance
        self._calculator = calculator or StandardPayrollCalculator()

    def _get(self, payroll_id: int) -> PayrollRecord:
        record = self._payroll.get_by_id(payroll_id)
        if not record:
            raise NotFoundError("Payroll record not found")
        return record

    def create(
        self,
        *,
        employee_id: int,
        pay_period_start: date,
        pay_period_end: date,
        base_salary,
        gross_pay,
        deductions_total,
        net_pay,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
        today: Optional[date] = None,
    ) -> int:
        if not self._users.get_by_id(employee_id):
            raise NotFoundError("Employee not found")
        if pay_period_start > pay_period_end:
            raise ValidationError("Pay period start must be before pay period end")

        amounts = PayrollAmounts.parse(
            base_salary=base_salary, gross_pay=gross_pay, deductions_total=deductions_total, net_pay=net_pay
        )
        payroll_id = self._payroll.create(
            employee_id=employee_id,
            pay_period_start=pay_period_start,
            pay_period_end=pay_period_end,
            run_date=today or now_local().date(),
            payment_method=payment_method,
            notes=notes,
            created_by=created_by,
            **asdict(amounts),
        )
        logger.info("Created payroll %s for employee %s", payroll_id, employee_id)
        return payroll_id

    def update(
        self,
        payroll_id: int,
        *,
        base_salary,
        gross_pay,
        deductions_total,
        net_pay,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
    ) -> None:
        record = self._get(payroll_id)
        if record.status == PayrollStatus.PAID:
            raise ValidationError("Paid payroll records cannot be changed")

        amounts = PayrollAmounts.parse(
            base_salary=base_salary, gross_pay=gross_pay, deductions_total=deductions_total, net_pay=net_pay
        )
        self._payroll.update_amounts(
            payroll_id=payroll_id, payment_method=payment_method, notes=notes, **asdict(amounts)
        )

    def delete(self, payroll_id: int) -> None:
        self._get(payroll_id)
        self._payroll.delete(payroll_id)

    def _transition(
        self,
        payroll_id: int,
        target: PayrollStatus,
        *,
        now: Optional[datetime],
        transaction_ref: Optional[str] = None,
    ) -> None:
        record = self._get(payroll_id)
        if target not in _ALLOWED_TRANSITIONS[record.status]:
            raise ValidationError(f"Cannot move payroll from {record.status.value} to {target.value}")
        self._payroll.update_status(
            payroll_id=payroll_id,
            status=target,
            payment_date=now or now_local(),
            transaction_ref=(transaction_ref or "").strip() or None,
        )
        logger.info("Payroll %s -> %s", payroll_id, target.value)

    def mark_processed(self, payroll_id: int, *, now: Optional[datetime] = None) -> None:
        self._transition(payroll_id, PayrollStatus.PROCESSED, now=now)

    def mark_paid(self, payroll_id: int, transaction_ref: Optional[str] = None, *, now: Optional[datetime] = None) -> None:
        self._transition(payroll_id, PayrollStatus.PAID, now=now, transaction_ref=transaction_ref)

    def list(self, filters: Optional[PayrollFilters] = None) -> list[dict]:
        records = self._payroll.list(filters or PayrollFilters())
        employees = self._users.get_many([r.employee_id for r in records])

        out = []
        for r in records:
            emp = employees.get(r.employee_id) or {}
            out.append(
                {
                    "payroll_id": r.payroll_id,
                    "employee_id": r.employee_id,
                    "employee_name": emp.get("full_name") or f"Employee {r.employee_id}",
                    "employee_department": emp.get("dept_name") or "Unknown",
                    "pay_period_start": r.pay_period_start.isoformat(),
                    "pay_period_end": r.pay_period_end.isoformat(),
                    "run_date": r.run_date.isoformat(),
                    "status": r.status.value,
                    "base_salary": str(r.base_salary),
                    "gross_pay": str(r.gross_pay),
                    "deductions_total": str(r.deductions_total),
                    "net_pay": str(r.net_pay),
                    "payment_method": r.payment_method.value if r.payment_method else None,
                    "payment_date": r.payment_date.isoformat() if r.payment_date else None,
                    "transaction_ref": r.transaction_ref,
                    "notes": r.notes,
                }
            )
        return out

    def stats(self) -> dict:
        records = self._payroll.list(PayrollFilters())
        stats = {
            "total_records": len(records),
            "pending": 0,
            "processed": 0,
            "paid": 0,
            "total_gross_pay": Decimal("0"),
            "total_net_pay": Decimal("0"),
            "total_deductions": Decimal("0"),
        }
        for r in records:
            stats[r.status.value] += 1
            stats["total_gross_pay"] += r.gross_pay
            stats["total_net_pay"] += r.net_pay
            stats["total_deductions"] += r.deductions_total
        return stats

    def generate_from_attendance(
        self,
        *,
        employee_id: int,
        pay_period_start: date,
        pay_period_end: date,
        deductions_total=0,
        created_by: Optional[int] = None,
        today: Optional[date] = None,
    ) -> int:
        """Create a pending record with gross pay pro-rated by attended days over working days."""

        user = self._users.get_by_id(employee_id)
        if not user:
            raise NotFoundError("Employee not found")
        if pay_period_start > pay_period_end:
            raise ValidationError("Pay period start must be before pay period end")

        records = self._attendance.list_for_user_between(employee_id, pay_period_start, pay_period_end)
        gross = self._calculator.prorated_gross(
            monthly_salary=user.monthly_salary,
            days_worked=len(records),
            period_days=working_days(pay_period_start, pay_period_end),
        )
        deductions = _money(deductions_total, "Deductions")
        if deductions > gross:
            raise ValidationError("Deductions cannot exceed gross pay")

        return self.create(
            employee_id=employee_id,
            pay_period_start=pay_period_start,
            pay_period_end=pay_period_end,
            base_salary=user.monthly_salary,
            gross_pay=gross,
            deductions_total=deductions,
            net_pay=gross - deductions,
            notes=f"Generated from {len(records)} attendance days",
            created_by=created_by,
            today=today,
        )


@dataclass(frozen=True)
class ReportData:
    rows: list[dict]
    summary: list[dict]


class PayrollReportService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        *,
        calculator: Optional[PayrollCalculator] = None,
    ):
        self._attendance = attendance
        self._calculator = calculator or StandardPayrollCalculator()

    def build_attendance_report(
        self,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        user_id: Optional[int] = None,
        dept_id: Optional[int] = None,
    ) -> ReportData:
        end = end or now_local().date()
        start = start or end - timedelta(days=DEFAULT_REPORT_DAYS - 1)
        if start > end:
            raise ValidationError("Start date must be before end date")

        query_rows = self._attendance.get_report_rows(start_date=start, end_date=end, user_id=user_id, dept_id=dept_id)

        summary_map: dict[int, dict] = {}
        out_rows: list[dict] = []

        for r in query_rows:
            minutes = self._calculator.worked_minutes(r)

            out_rows.append(
                {
                    "user_id": r.user_id,
                    "full_name": r.full_name,
                    "username": r.username,
                    "dept_name": r.dept_name or "-",
                    "work_date": r.work_date.strftime("%Y-%m-%d"),
                    "check_in": r.check_in_time.strftime("%H:%M"),
                    "check_out": r.check_out_time.strftime("%H:%M") if r.check_out_time else "-",
                    "worked_minutes": minutes,
                    "worked_hours": f"{minutes // 60:02d}:{minutes % 60:02d}",
                    "status": r.status.value,
                    "location_verified": "yes" if r.location_verified else "no",
                    "notes": r.notes or "",
                }
            )

            s = summary_map.setdefault(
                r.user_id,
                {"user_id": r.user_id, "full_name": r.full_name, "username": r.username, "days": 0, "total_minutes": 0},
            )
            s["days"] += 1
            s["total_minutes"] += minutes

        summary = []
        for s in summary_map.values():
            total_minutes = int(s["total_minutes"])
            summary.append({**s, "total_hours": f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"})

        summary.sort(key=lambda x: x["total_minutes"], reverse=True)
        return ReportData(rows=out_rows, summary=summary)
