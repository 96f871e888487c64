from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from ...attendance.model import AttendanceReportRow


class PayrollCalculator(ABC):
    """Turns attendance into pay figures. Swap implementations per pay policy."""

    @abstractmethod
    def worked_minutes(self, row: AttendanceReportRow) -> int:
        raise NotImplementedError

    @abstractmethod
    def prorated_gross(self, *, monthly_salary: Decimal, days_worked: int, period_days: int) -> Decimal:
        raise NotImplementedError
