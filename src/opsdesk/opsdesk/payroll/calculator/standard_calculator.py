from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .base import PayrollCalculator
from ...attendance.model import AttendanceReportRow

CENT = Decimal("0.01")


class StandardPayrollCalculator(PayrollCalculator):
    """Standard rule: worked time is (out - in), not below 0; gross is pro-rata by days worked."""

    def worked_minutes(self, row: AttendanceReportRow) -> int:
        if not row.check_out_time:
            return 0
        minutes = int((row.check_out_time - row.check_in_time).total_seconds() // 60)
        return max(minutes, 0)

    def prorated_gross(self, *, monthly_salary: Decimal, days_worked: int, period_days: int) -> Decimal:
        if period_days <= 0:
            return Decimal("0.00")
        days = min(max(days_worked, 0), period_days)
        return (Decimal(monthly_salary) * days / period_days).quantize(CENT, rounding=ROUND_HALF_UP)
