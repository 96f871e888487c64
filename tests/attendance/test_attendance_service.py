from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import Optional

import pytest

from opsdesk.attendance.model import AttendanceRecord, AttendanceSettings, LocationInput
from opsdesk.attendance.service import AttendanceService
from opsdesk.core.enums import AttendanceStatus, Role
from opsdesk.core.exceptions import AuthorizationError, ValidationError
from opsdesk.users.model import User


@dataclass
class InMemoryUsers:
    users_by_id: dict[int, User]

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.users_by_id.get(user_id)

    def list_active(self):
        return [u for u in self.users_by_id.values() if u.is_active]


@dataclass
class InMemorySettings:
    settings: Optional[AttendanceSettings]

    def get_active(self) -> Optional[AttendanceSettings]:
        return self.settings


class InMemoryAttendance:
    def __init__(self):
        self._by_user_date: dict[tuple[int, date], AttendanceRecord] = {}
        self._id = 0

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[AttendanceRecord]:
        return self._by_user_date.get((user_id, work_date))

    def get_recent_for_user(self, user_id: int, limit: int):
        items = [r for r in self._by_user_date.values() if r.user_id == user_id]
        items.sort(key=lambda r: r.check_in_time, reverse=True)
        return items[:limit]

    def list_for_date(self, work_date: date):
        return [r for (_, d), r in self._by_user_date.items() if d == work_date]

    def list_for_user_between(self, user_id: int, start: date, end: date):
        return [r for (uid, d), r in self._by_user_date.items() if uid == user_id and start <= d <= end]

    def create_checkin(self, *, user_id: int, work_date: date, check_in_time: datetime, status, **extra) -> int:
        self._id += 1
        self._by_user_date[(user_id, work_date)] = AttendanceRecord(
            attendance_id=self._id,
            user_id=user_id,
            work_date=work_date,
            check_in_time=check_in_time,
            check_out_time=None,
            status=status,
            **extra,
        )
        return self._id

    def update_checkout(self, *, attendance_id: int, check_out_time: datetime, status) -> bool:
        for key, rec in self._by_user_date.items():
            if rec.attendance_id == attendance_id:
                self._by_user_date[key] = replace(rec, check_out_time=check_out_time, status=status)
                return True
        return False


SETTINGS = AttendanceSettings(
    settings_id=1,
    office_name="HQ",
    office_ip_ranges=("192.168.1.0/24",),
    office_latitude=None,
    office_longitude=None,
    allowed_radius_meters=100,
    work_start_time=time(9, 0),
    work_end_time=time(18, 0),
    late_threshold_minutes=15,
)


def _user(user_id: int, is_active: bool = True) -> User:
    return User(
        user_id=user_id,
        full_name=f"User {user_id}",
        username=f"u{user_id}",
        password_hash="x",
        role=Role.EMPLOYEE,
        dept_id=1,
        employee_code=f"E{user_id:03d}",
        is_active=is_active,
    )


def _service(settings=SETTINGS, users=None):
    attendance = InMemoryAttendance()
    users = users or {1: _user(1), 2: _user(2)}
    svc = AttendanceService(attendance, InMemoryUsers(users), InMemorySettings(settings))
    return svc, attendance


def test_checkin_on_time_from_office_network(fixed_now):
    svc, attendance = _service()

    svc.check_in(1, LocationInput(ip_address="192.168.1.20"), now=fixed_now)

    rec = attendance.get_for_user_and_date(1, fixed_now.date())
    assert rec.status == AttendanceStatus.PRESENT
    assert rec.location_verified
    assert rec.ip_address == "192.168.1.20"


def test_late_checkin_gets_note():
    svc, attendance = _service()
    now = datetime(2026, 3, 2, 9, 40)

    svc.check_in(1, now=now)

    rec = attendance.get_for_user_and_date(1, now.date())
    assert rec.status == AttendanceStatus.LATE
    assert rec.notes == "Late by 40 minutes"
    assert not rec.location_verified


def test_double_checkin_rejected(fixed_now):
    svc, _ = _service()
    svc.check_in(1, now=fixed_now)

    with pytest.raises(ValidationError, match="already checked in"):
        svc.check_in(1, now=fixed_now)


def test_inactive_user_cannot_check_in(fixed_now):
    svc, _ = _service(users={1: _user(1, is_active=False)})

    with pytest.raises(ValidationError):
        svc.check_in(1, now=fixed_now)


def test_required_location_blocks_checkin_outside_office(fixed_now):
    svc, _ = _service(settings=replace(SETTINGS, require_location=True))

    with pytest.raises(ValidationError, match="outside the office network"):
        svc.check_in(1, LocationInput(ip_address="8.8.8.8"), now=fixed_now)


def test_required_selfie(fixed_now):
    svc, _ = _service(settings=replace(SETTINGS, require_selfie=True))

    with pytest.raises(ValidationError, match="selfie"):
        svc.check_in(1, LocationInput(ip_address="192.168.1.2"), now=fixed_now)


def test_checkout_flow(fixed_now):
    svc, attendance = _service()
    svc.check_in(1, now=fixed_now)

    svc.check_out(1, now=fixed_now.replace(hour=18))

    rec = attendance.get_for_user_and_date(1, fixed_now.date())
    assert rec.status == AttendanceStatus.CHECKED_OUT
    assert rec.check_out_time.hour == 18
    with pytest.raises(ValidationError, match="already checked out"):
        svc.check_out(1, now=fixed_now.replace(hour=19))


def test_checkout_without_checkin(fixed_now):
    svc, _ = _service()

    with pytest.raises(ValidationError, match="not checked in"):
        svc.check_out(1, now=fixed_now)


def test_qr_toggles_between_checkin_and_checkout(fixed_now):
    svc, _ = _service()

    assert svc.check_in_or_out(1, token="tok", expected_token="tok", now=fixed_now) == "check_in"
    assert svc.check_in_or_out(1, token=" tok ", expected_token="tok", now=fixed_now.replace(hour=17)) == "check_out"
    with pytest.raises(ValidationError, match="Invalid QR"):
        svc.check_in_or_out(1, token="bad", expected_token="tok", now=fixed_now)


def test_today_overview_counts_absent(fixed_now):
    svc, _ = _service()
    svc.check_in(1, now=fixed_now)

    overview = svc.today_overview(fixed_now.date())

    assert overview["stats"]["total"] == 2
    assert overview["stats"]["present"] == 1
    assert overview["stats"]["absent"] == 1
    assert overview["stats"]["attendance_rate"] == 50


def test_summary_rederives_lateness_after_checkout():
    svc, _ = _service()
    svc.check_in(1, now=datetime(2026, 3, 2, 9, 0))
    svc.check_out(1, now=datetime(2026, 3, 2, 17, 0))
    svc.check_in(1, now=datetime(2026, 3, 3, 9, 30))
    svc.check_out(1, now=datetime(2026, 3, 3, 18, 0))

    summary = svc.summary(1, date(2026, 3, 1), date(2026, 3, 31))

    assert summary["days_present"] == 2
    assert summary["days_late"] == 1
    assert summary["total_worked_minutes"] == 8 * 60 + 8 * 60 + 30
    assert summary["average_check_in"] == "09:15"


def test_summary_rejects_inverted_range():
    svc, _ = _service()

    with pytest.raises(ValidationError):
        svc.summary(1, date(2026, 3, 2), date(2026, 3, 1))


def test_only_privileged_can_view_others():
    AttendanceService.ensure_self_or_privileged(actor_id=1, target_id=1, privileged=False)
    AttendanceService.ensure_self_or_privileged(actor_id=1, target_id=2, privileged=True)

    with pytest.raises(AuthorizationError):
        AttendanceService.ensure_self_or_privileged(actor_id=1, target_id=2, privileged=False)


def test_today_record_for_self(fixed_now):
    svc, _ = _service()
    svc.check_in(1, now=fixed_now)

    record = svc.today_record(1, fixed_now.date())
    assert record["check_in"] == "09:00:00"
    assert record["check_out"] == "-"
    assert svc.today_record(2, fixed_now.date()) is None
