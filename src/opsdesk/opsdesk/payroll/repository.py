from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import PaymentMethod, PayrollStatus
from .model import PayrollFilters, PayrollRecord


class PayrollRepository(Protocol):
    def get_by_id(self, payroll_id: int) -> Optional[PayrollRecord]:
        raise NotImplementedError

    def list(self, filters: PayrollFilters) -> Sequence[PayrollRecord]:
        raise NotImplementedError

    def create(
        self,
        *,
        employee_id: int,
        pay_period_start: date,
        pay_period_end: date,
        run_date: date,
        base_salary: Decimal,
        gross_pay: Decimal,
        deductions_total: Decimal,
        net_pay: Decimal,
        payment_method: Optional[PaymentMethod],
        notes: Optional[str],
        created_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def update_amounts(
        self,
        *,
        payroll_id: int,
        base_salary: Decimal,
        gross_pay: Decimal,
        deductions_total: Decimal,
        net_pay: Decimal,
        payment_method: Optional[PaymentMethod],
        notes: Optional[str],
    ) -> bool:
        raise NotImplementedError

    def update_status(
        self,
        *,
        payroll_id: int,
        status: PayrollStatus,
        payment_date: Optional[datetime],
        transaction_ref: Optional[str] = None,
    ) -> bool:
        raise NotImplementedError

    def delete(self, payroll_id: int) -> bool:
        raise NotImplementedError
