from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..core.enums import AttendanceStatus
from .model import AttendanceSettings
from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on office rules."""

    def for_checkin(self, *, now: datetime, settings: Optional[AttendanceSettings]) -> AttendanceStrategy:
        if not settings:
            return PresentStrategy()

        cutoff = datetime.combine(now.date(), settings.work_start_time) + timedelta(
            minutes=settings.late_threshold_minutes
        )
        if now <= cutoff:
            return PresentStrategy()
        return LateStrategy()

    def for_checkout(self, *, current_status: AttendanceStatus) -> AttendanceStrategy:
        if current_status == AttendanceStatus.LATE:
            return LateStrategy()
        return PresentStrategy()
