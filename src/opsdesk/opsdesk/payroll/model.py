from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import PaymentMethod, PayrollStatus


@dataclass(frozen=True)
class PayrollRecord:
    payroll_id: int
    employee_id: int
    pay_period_start: date
    pay_period_end: date
    run_date: date
    status: PayrollStatus
    base_salary: Decimal
    gross_pay: Decimal
    deductions_total: Decimal
    net_pay: Decimal
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[datetime] = None
    transaction_ref: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None


@dataclass(frozen=True)
class PayrollFilters:
    employee_id: Optional[int] = None
    status: Optional[PayrollStatus] = None
    payment_method: Optional[PaymentMethod] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
