from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, json_column, normalize_mysql_time
from .model import AttendanceRecord, AttendanceReportRow, AttendanceSettings
from .repository import AttendanceRepository, AttendanceSettingsRepository

_RECORD_COLUMNS = """
    attendance_id, user_id, work_date, check_in_time, check_out_time, status,
    selfie_path, location_verified, ip_address, gps_latitude, gps_longitude, notes
"""


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        user_id=int(r["user_id"]),
        work_date=r["work_date"],
        check_in_time=r["check_in_time"],
        check_out_time=r.get("check_out_time"),
        status=AttendanceStatus(r["status"]),
        selfie_path=r.get("selfie_path"),
        location_verified=bool(r.get("location_verified")),
        ip_address=r.get("ip_address"),
        gps_latitude=r.get("gps_latitude"),
        gps_longitude=r.get("gps_longitude"),
        notes=r.get("notes"),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_recent_for_user(self, user_id: int, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance_records
                WHERE user_id=%s
                ORDER BY work_date DESC
                LIMIT %s
                """,
                (int(user_id), int(limit)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def get_for_user_and_date(self, user_id: int, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_RECORD_COLUMNS} FROM attendance_records WHERE user_id=%s AND work_date=%s",
                (int(user_id), work_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_for_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_RECORD_COLUMNS} FROM attendance_records WHERE work_date=%s", (work_date,))
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_user_between(self, user_id: int, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance_records
                WHERE user_id=%s AND work_date BETWEEN %s AND %s
                ORDER BY work_date ASC
                """,
                (int(user_id), start_date, end_date),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def create_checkin(
        self,
        *,
        user_id: int,
        work_date: date,
        check_in_time: datetime,
        status: AttendanceStatus,
        location_verified: bool,
        ip_address: Optional[str] = None,
        gps_latitude: Optional[Decimal] = None,
        gps_longitude: Optional[Decimal] = None,
        selfie_path: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(
                    user_id, work_date, check_in_time, status, location_verified,
                    ip_address, gps_latitude, gps_longitude, selfie_path, notes
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(user_id),
                    work_date,
                    check_in_time,
                    status.value,
                    1 if location_verified else 0,
                    ip_address,
                    gps_latitude,
                    gps_longitude,
                    selfie_path,
                    notes,
                ),
            )
            return int(cur.lastrowid)

    def update_checkout(self, *, attendance_id: int, check_out_time: datetime, status: AttendanceStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_records SET check_out_time=%s, status=%s WHERE attendance_id=%s",
                (check_out_time, status.value, int(attendance_id)),
            )
            return cur.rowcount > 0

    def get_report_rows(
        self,
        *,
        start_date: date,
        end_date: date,
        dept_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Sequence[AttendanceReportRow]:
        clauses = ["ar.work_date BETWEEN %s AND %s"]
        params: list[object] = [start_date, end_date]

        if dept_id is not None:
            clauses.append("u.dept_id=%s")
            params.append(int(dept_id))
        if user_id is not None:
            clauses.append("u.user_id=%s")
            params.append(int(user_id))

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT
                    u.user_id, u.full_name, u.username, d.dept_name,
                    ar.work_date, ar.check_in_time, ar.check_out_time, ar.status,
                    ar.location_verified, ar.notes
                FROM attendance_records ar
                JOIN users u ON u.user_id = ar.user_id
                LEFT JOIN departments d ON d.dept_id = u.dept_id
                WHERE {where}
                ORDER BY ar.work_date DESC, u.user_id ASC
                """,
                tuple(params),
            )
            return [
                AttendanceReportRow(
                    user_id=int(r["user_id"]),
                    full_name=r["full_name"],
                    username=r["username"],
                    dept_name=r.get("dept_name"),
                    work_date=r["work_date"],
                    check_in_time=r["check_in_time"],
                    check_out_time=r.get("check_out_time"),
                    status=AttendanceStatus(r["status"]),
                    location_verified=bool(r.get("location_verified")),
                    notes=r.get("notes"),
                )
                for r in fetchall(cur)
            ]


class MySQLAttendanceSettingsRepository(AttendanceSettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_active(self) -> Optional[AttendanceSettings]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT settings_id, office_name, office_ip_ranges, office_latitude, office_longitude,
                       allowed_radius_meters, work_start_time, work_end_time, late_threshold_minutes,
                       require_selfie, require_location, is_active
                FROM attendance_settings
                WHERE is_active=1
                ORDER BY updated_at DESC
                LIMIT 1
                """
            )
            r = fetchone(cur)
            if not r:
                return None
            return AttendanceSettings(
                settings_id=int(r["settings_id"]),
                office_name=r["office_name"],
                office_ip_ranges=tuple(json_column(r.get("office_ip_ranges"), default=[])),
                office_latitude=r.get("office_latitude"),
                office_longitude=r.get("office_longitude"),
                allowed_radius_meters=int(r.get("allowed_radius_meters") or 0),
                work_start_time=normalize_mysql_time(r["work_start_time"]),
                work_end_time=normalize_mysql_time(r["work_end_time"]),
                late_threshold_minutes=int(r.get("late_threshold_minutes") or 0),
                require_selfie=bool(r.get("require_selfie")),
                require_location=bool(r.get("require_location")),
                is_active=bool(r.get("is_active")),
            )
