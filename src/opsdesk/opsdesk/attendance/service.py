from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceStatus
from ..core.exceptions import AuthorizationError, ValidationError
from ..users.repository import UserRepository
from .factory import AttendanceStrategyFactory
from .location import LocationVerifier
from .model import AttendanceRecord, LocationInput
from .repository import AttendanceRepository, AttendanceSettingsRepository

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        users: UserRepository,
        settings: AttendanceSettingsRepository,
        *,
        strategy_factory: AttendanceStrategyFactory | None = None,
        verifier: LocationVerifier | None = None,
    ):
        self._attendance = attendance
        self._users = users
        self._settings = settings
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._verifier = verifier or LocationVerifier()

    def check_in(self, user_id: int, location: LocationInput | None = None, *, now: datetime | None = None) -> int:
        now = now or now_local()
        today = now.date()
        location = location or LocationInput()

        user = self._users.get_by_id(user_id)
        if not user or not user.is_active:
            raise ValidationError("Employee does not exist or is inactive")

        if self._attendance.get_for_user_and_date(user_id, today):
            raise ValidationError("You have already checked in today")

        settings = self._settings.get_active()
        verified = False
        if settings:
            check = self._verifier.verify(settings, location)
            verified = check.verified
            if settings.require_location and not verified:
                raise ValidationError("; ".join(check.reasons) or "Location verification failed")
            if settings.require_selfie and not location.selfie_path:
                raise ValidationError("A selfie is required to check in")

        strategy = self._factory.for_checkin(now=now, settings=settings)
        decision = strategy.decide_checkin(now=now, settings=settings)

        attendance_id = self._attendance.create_checkin(
            user_id=user_id,
            work_date=today,
            check_in_time=now,
            status=decision.status,
            location_verified=verified,
            ip_address=location.ip_address,
            gps_latitude=location.latitude,
            gps_longitude=location.longitude,
            selfie_path=location.selfie_path,
            notes=decision.note,
        )
        logger.info("User %s checked in (%s)", user_id, decision.status.value)
        return attendance_id

    def check_out(self, user_id: int, *, now: datetime | None = None) -> None:
        now = now or now_local()
        today = now.date()

        record = self._attendance.get_for_user_and_date(user_id, today)
        if not record:
            raise ValidationError("You have not checked in today")
        if record.check_out_time is not None:
            raise ValidationError("You have already checked out today")
        if now < record.check_in_time:
            raise ValidationError("Check-out time cannot be before check-in time")

        strategy = self._factory.for_checkout(current_status=record.status)
        decision = strategy.decide_checkout(now=now, current=record.status)

        self._attendance.update_checkout(
            attendance_id=record.attendance_id,
            check_out_time=now,
            status=decision.status,
        )
        logger.info("User %s checked out", user_id)

    def check_in_or_out(
        self,
        user_id: int,
        *,
        token: str,
        expected_token: str,
        location: LocationInput | None = None,
        now: datetime | None = None,
    ) -> str:
        """QR flow: check in when there is no record today, otherwise check out."""

        if not token or token.strip() != expected_token:
            raise ValidationError("Invalid QR code")

        now = now or now_local()
        record = self._attendance.get_for_user_and_date(user_id, now.date())
        if record is None:
            self.check_in(user_id, location, now=now)
            return "check_in"
        self.check_out(user_id, now=now)
        return "check_out"

    def today_overview(self, today: date | None = None) -> dict:
        today = today or now_local().date()
        records = {r.user_id: r for r in self._attendance.list_for_date(today)}

        rows = []
        stats = {"total": 0, "present": 0, "late": 0, "absent": 0, "checked_out": 0}
        for user in self._users.list_active():
            record = records.get(user.user_id)
            status = self._overview_status(record)
            stats["total"] += 1
            stats[status.value] += 1
            rows.append(
                {
                    "user_id": user.user_id,
                    "full_name": user.full_name,
                    "employee_code": user.employee_code,
                    "status": status.value,
                    "check_in": record.check_in_time.strftime("%H:%M:%S") if record else None,
                    "check_out": record.check_out_time.strftime("%H:%M:%S") if record and record.check_out_time else None,
                    "location_verified": bool(record and record.location_verified),
                }
            )

        attended = stats["present"] + stats["late"] + stats["checked_out"]
        stats["attendance_rate"] = round(attended / stats["total"] * 100) if stats["total"] else 0
        return {"date": today.isoformat(), "rows": rows, "stats": stats}

    @staticmethod
    def _overview_status(record: Optional[AttendanceRecord]) -> AttendanceStatus:
        if record is None:
            return AttendanceStatus.ABSENT
        if record.check_out_time is not None:
            return AttendanceStatus.CHECKED_OUT
        if record.status == AttendanceStatus.LATE:
            return AttendanceStatus.LATE
        return AttendanceStatus.PRESENT

    def history(self, user_id: int, *, limit: int = DEFAULT_HISTORY_LIMIT):
        return [self._to_ui(r) for r in self._attendance.get_recent_for_user(user_id, limit)]

    def today_record(self, user_id: int, today: date) -> Optional[dict]:
        record = self._attendance.get_for_user_and_date(user_id, today)
        return self._to_ui(record) if record else None

    def summary(self, user_id: int, start_date: date, end_date: date) -> dict:
        if start_date > end_date:
            raise ValidationError("Start date must be before end date")

        settings = self._settings.get_active()
        records = self._attendance.list_for_user_between(user_id, start_date, end_date)

        days_late = 0
        worked_minutes = 0
        check_in_minutes = []
        for r in records:
            # check-out overwrites the stored status, so lateness is re-derived from check-in time
            decision = self._factory.for_checkin(now=r.check_in_time, settings=settings).decide_checkin(
                now=r.check_in_time, settings=settings
            )
            if decision.status == AttendanceStatus.LATE:
                days_late += 1
            if r.check_out_time:
                worked_minutes += max(0, int((r.check_out_time - r.check_in_time).total_seconds() // 60))
            check_in_minutes.append(r.check_in_time.hour * 60 + r.check_in_time.minute)

        avg = None
        if check_in_minutes:
            mean = round(sum(check_in_minutes) / len(check_in_minutes))
            avg = f"{mean // 60:02d}:{mean % 60:02d}"

        return {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "days_present": len(records),
            "days_late": days_late,
            "total_worked_minutes": worked_minutes,
            "average_check_in": avg,
        }

    @staticmethod
    def ensure_self_or_privileged(*, actor_id: int, target_id: int, privileged: bool) -> None:
        if actor_id != target_id and not privileged:
            raise AuthorizationError("You can only view your own attendance")

    def _to_ui(self, r: AttendanceRecord) -> dict:
        return {
            "date": r.work_date.strftime("%Y-%m-%d"),
            "check_in": r.check_in_time.strftime("%H:%M:%S"),
            "check_out": r.check_out_time.strftime("%H:%M:%S") if r.check_out_time else "-",
            "status": r.status.value,
            "location_verified": r.location_verified,
            "notes": r.notes,
        }
