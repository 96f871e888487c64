from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from ...core.enums import AttendanceStatus
from ..model import AttendanceSettings
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Late check-in."""

    def decide_checkin(self, *, now: datetime, settings: Optional[AttendanceSettings]) -> StatusDecision:
        note = None
        if settings:
            start = datetime.combine(now.date(), settings.work_start_time)
            late_by = (now - start) // timedelta(minutes=1)
            note = f"Late by {late_by} minutes"
        return StatusDecision(status=AttendanceStatus.LATE, note=note)

    def decide_checkout(self, *, now: datetime, current: AttendanceStatus) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.CHECKED_OUT)
