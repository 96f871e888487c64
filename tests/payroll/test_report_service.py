from datetime import date, datetime

import pytest

from opsdesk.attendance.model import AttendanceReportRow
from opsdesk.core.enums import AttendanceStatus
from opsdesk.core.exceptions import ValidationError
from opsdesk.payroll.service import PayrollReportService


class FakeAttendance:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def get_report_rows(self, *, start_date, end_date, user_id=None, dept_id=None):
        self.calls.append((start_date, end_date, user_id, dept_id))
        return self.rows


def _row(user_id, name, day, hours):
    check_in = datetime(2026, 3, day, 8, 0)
    return AttendanceReportRow(
        user_id=user_id,
        full_name=name,
        username=name.lower(),
        dept_name="Ops",
        work_date=check_in.date(),
        check_in_time=check_in,
        check_out_time=check_in.replace(hour=8 + hours),
        status=AttendanceStatus.CHECKED_OUT,
    )


def test_report_builds_rows_and_sorted_summary():
    repo = FakeAttendance([_row(1, "An", 2, 8), _row(2, "Binh", 2, 9), _row(1, "An", 3, 3)])
    svc = PayrollReportService(repo)

    report = svc.build_attendance_report(start=date(2026, 3, 1), end=date(2026, 3, 7))

    assert len(report.rows) == 3
    assert report.rows[0]["worked_hours"] == "08:00"
    assert [s["full_name"] for s in report.summary] == ["An", "Binh"]
    assert report.summary[0]["days"] == 2
    assert report.summary[0]["total_hours"] == "11:00"


def test_default_range_is_last_week():
    repo = FakeAttendance([])

    PayrollReportService(repo).build_attendance_report(end=date(2026, 3, 7))

    assert repo.calls[0][:2] == (date(2026, 3, 1), date(2026, 3, 7))


def test_inverted_range_rejected():
    with pytest.raises(ValidationError):
        PayrollReportService(FakeAttendance([])).build_attendance_report(start=date(2026, 3, 8), end=date(2026, 3, 7))
