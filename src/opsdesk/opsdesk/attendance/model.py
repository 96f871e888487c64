from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceSettings:
    """Office-level check-in rules (the single active attendance_settings row)."""

    settings_id: int
    office_name: str
    office_ip_ranges: tuple[str, ...]
    office_latitude: Optional[Decimal]
    office_longitude: Optional[Decimal]
    allowed_radius_meters: int
    work_start_time: time
    work_end_time: time
    late_threshold_minutes: int
    require_selfie: bool = False
    require_location: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class LocationInput:
    """What the client sends along with a check-in."""

    ip_address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    selfie_path: Optional[str] = None


@dataclass(frozen=True)
class LocationCheck:
    ip_ok: bool
    gps_ok: bool
    distance_meters: Optional[float] = None
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def verified(self) -> bool:
        return self.ip_ok and self.gps_ok


@dataclass(frozen=True)
class AttendanceRecord:
    attendance_id: int
    user_id: int
    work_date: date
    check_in_time: datetime
    check_out_time: Optional[datetime]
    status: AttendanceStatus
    selfie_path: Optional[str] = None
    location_verified: bool = False
    ip_address: Optional[str] = None
    gps_latitude: Optional[Decimal] = None
    gps_longitude: Optional[Decimal] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class AttendanceReportRow:
    """Read-model for reports/exports (joined with user and department)."""

    user_id: int
    full_name: str
    username: str
    dept_name: Optional[str]
    work_date: date
    check_in_time: datetime
    check_out_time: Optional[datetime]
    status: AttendanceStatus
    location_verified: bool = False
    notes: Optional[str] = None
