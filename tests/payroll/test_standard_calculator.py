from datetime import date, datetime
from decimal import Decimal

import pytest

from opsdesk.attendance.model import AttendanceReportRow
from opsdesk.core.enums import AttendanceStatus
from opsdesk.payroll.calculator.standard_calculator import StandardPayrollCalculator


def _row(check_in, check_out):
    return AttendanceReportRow(
        user_id=1,
        full_name="A",
        username="a",
        dept_name=None,
        work_date=date(2026, 3, 2),
        check_in_time=check_in,
        check_out_time=check_out,
        status=AttendanceStatus.CHECKED_OUT,
    )


def test_worked_minutes_is_checkout_minus_checkin():
    row = _row(datetime(2026, 3, 2, 8, 0), datetime(2026, 3, 2, 17, 30))

    assert StandardPayrollCalculator().worked_minutes(row) == 9 * 60 + 30


def test_open_record_counts_zero_minutes():
    assert StandardPayrollCalculator().worked_minutes(_row(datetime(2026, 3, 2, 8, 0), None)) == 0


def test_worked_minutes_never_negative():
    row = _row(datetime(2026, 3, 2, 17, 0), datetime(2026, 3, 2, 8, 0))

    assert StandardPayrollCalculator().worked_minutes(row) == 0


@pytest.mark.parametrize(
    "days_worked,period_days,expected",
    [
        (22, 22, Decimal("30000.00")),
        (11, 22, Decimal("15000.00")),
        (7, 22, Decimal("9545.45")),
        (30, 22, Decimal("30000.00")),
        (5, 0, Decimal("0.00")),
    ],
)
def test_prorated_gross(days_worked, period_days, expected):
    calc = StandardPayrollCalculator()

    assert calc.prorated_gross(monthly_salary=Decimal("30000"), days_worked=days_worked, period_days=period_days) == expected
