from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytest

from opsdesk.attendance.model import AttendanceRecord
from opsdesk.core.enums import AttendanceStatus, PayrollStatus, Role
from opsdesk.core.exceptions import NotFoundError, ValidationError
from opsdesk.payroll.model import PayrollFilters, PayrollRecord
from opsdesk.payroll.service import PayrollAmounts, PayrollService, working_days
from opsdesk.users.model import User


class InMemoryPayroll:
    def __init__(self):
        self.records: dict[int, PayrollRecord] = {}

    def get_by_id(self, payroll_id: int) -> Optional[PayrollRecord]:
        return self.records.get(payroll_id)

    def list(self, filters: PayrollFilters):
        return [r for r in self.records.values() if filters.status in (None, r.status)]

    def create(self, *, payment_method, notes, created_by, **fields) -> int:
        payroll_id = len(self.records) + 1
        self.records[payroll_id] = PayrollRecord(
            payroll_id=payroll_id,
            status=PayrollStatus.PENDING,
            payment_method=payment_method,
            notes=notes,
            created_by=created_by,
            **fields,
        )
        return payroll_id

    def update_amounts(self, *, payroll_id: int, **fields) -> bool:
        self.records[payroll_id] = replace(self.records[payroll_id], **fields)
        return True

    def update_status(self, *, payroll_id: int, status, payment_date, transaction_ref=None) -> bool:
        self.records[payroll_id] = replace(
            self.records[payroll_id], status=status, payment_date=payment_date, transaction_ref=transaction_ref
        )
        return True

    def delete(self, payroll_id: int) -> bool:
        return self.records.pop(payroll_id, None) is not None


class InMemoryUsers:
    def __init__(self, *users: User):
        self._users = {u.user_id: u for u in users}

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    def get_many(self, user_ids):
        return {uid: {"full_name": self._users[uid].full_name, "dept_name": "Ops"} for uid in user_ids if uid in self._users}


class InMemoryAttendance:
    def __init__(self, records):
        self._records = records

    def list_for_user_between(self, user_id: int, start: date, end: date):
        return [r for r in self._records if r.user_id == user_id and start <= r.work_date <= end]


EMPLOYEE = User(
    user_id=7,
    full_name="Hoa Le",
    username="hoa",
    password_hash="x",
    role=Role.EMPLOYEE,
    dept_id=1,
    monthly_salary=Decimal("22000"),
)


def _service(attendance_records=()):
    repo = InMemoryPayroll()
    svc = PayrollService(repo, InMemoryUsers(EMPLOYEE), InMemoryAttendance(list(attendance_records)))
    return svc, repo


def _create(svc, **overrides):
    values = dict(
        employee_id=7,
        pay_period_start=date(2026, 3, 1),
        pay_period_end=date(2026, 3, 31),
        base_salary="22000",
        gross_pay="22000",
        deductions_total="1500.50",
        net_pay="20499.50",
        today=date(2026, 3, 31),
    )
    values.update(overrides)
    return svc.create(**values)


def test_working_days_counts_weekdays_only():
    assert working_days(date(2026, 3, 2), date(2026, 3, 8)) == 5
    assert working_days(date(2026, 3, 7), date(2026, 3, 8)) == 0


def test_amounts_must_balance():
    with pytest.raises(ValidationError, match="Net pay"):
        PayrollAmounts.parse(base_salary=100, gross_pay=100, deductions_total=10, net_pay=80)
    with pytest.raises(ValidationError, match="must be a number"):
        PayrollAmounts.parse(base_salary="abc", gross_pay=100, deductions_total=0, net_pay=100)


def test_create_and_list(fixed_now):
    svc, repo = _service()

    payroll_id = _create(svc)

    assert repo.records[payroll_id].net_pay == Decimal("20499.50")
    rows = svc.list()
    assert rows[0]["employee_name"] == "Hoa Le"
    assert rows[0]["status"] == "pending"


def test_create_rejects_unknown_employee_and_bad_period():
    svc, _ = _service()

    with pytest.raises(NotFoundError):
        _create(svc, employee_id=99)
    with pytest.raises(ValidationError):
        _create(svc, pay_period_start=date(2026, 4, 1))


def test_status_moves_forward_only(fixed_now):
    svc, repo = _service()
    payroll_id = _create(svc)

    svc.mark_processed(payroll_id, now=fixed_now)
    svc.mark_paid(payroll_id, " TXN-1 ", now=fixed_now)

    record = repo.records[payroll_id]
    assert record.status == PayrollStatus.PAID
    assert record.transaction_ref == "TXN-1"
    with pytest.raises(ValidationError):
        svc.mark_processed(payroll_id, now=fixed_now)
    with pytest.raises(ValidationError, match="Paid payroll"):
        svc.update(payroll_id, base_salary=1, gross_pay=1, deductions_total=0, net_pay=1)


def test_stats_sum_amounts():
    svc, _ = _service()
    _create(svc)
    _create(svc, gross_pay="1000", deductions_total="0", net_pay="1000")

    stats = svc.stats()

    assert stats["total_records"] == 2
    assert stats["pending"] == 2
    assert stats["total_gross_pay"] == Decimal("23000")
    assert stats["total_deductions"] == Decimal("1500.50")


def test_generate_from_attendance_prorates_gross():
    records = [
        AttendanceRecord(
            attendance_id=i,
            user_id=7,
            work_date=date(2026, 3, d),
            check_in_time=datetime(2026, 3, d, 9, 0),
            check_out_time=datetime(2026, 3, d, 18, 0),
            status=AttendanceStatus.CHECKED_OUT,
        )
        for i, d in enumerate((2, 3, 4, 5, 6), start=1)
    ]
    svc, repo = _service(records)

    payroll_id = svc.generate_from_attendance(
        employee_id=7,
        pay_period_start=date(2026, 3, 2),
        pay_period_end=date(2026, 3, 13),
        deductions_total="100",
        today=date(2026, 3, 13),
    )

    record = repo.records[payroll_id]
    assert record.gross_pay == Decimal("11000.00")
    assert record.net_pay == Decimal("10900.00")
    assert record.notes == "Generated from 5 attendance days"


def test_generate_rejects_deductions_above_gross():
    svc, _ = _service()

    with pytest.raises(ValidationError, match="Deductions"):
        svc.generate_from_attendance(
            employee_id=7,
            pay_period_start=date(2026, 3, 2),
            pay_period_end=date(2026, 3, 6),
            deductions_total="1",
        )
