from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from ..core.enums import PaymentMethod, PayrollStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone, to_decimal
from .model import PayrollFilters, PayrollRecord
from .repository import PayrollRepository

_COLUMNS = """
    payroll_id, employee_id, pay_period_start, pay_period_end, run_date, status,
    base_salary, gross_pay, deductions_total, net_pay, payment_method, payment_date,
    transaction_ref, notes, created_by
"""


def _to_record(r: dict) -> PayrollRecord:
    return PayrollRecord(
        payroll_id=int(r["payroll_id"]),
        employee_id=int(r["employee_id"]),
        pay_period_start=r["pay_period_start"],
        pay_period_end=r["pay_period_end"],
        run_date=r["run_date"],
        status=PayrollStatus(r["status"]),
        base_salary=to_decimal(r["base_salary"]),
        gross_pay=to_decimal(r["gross_pay"]),
        deductions_total=to_decimal(r["deductions_total"]),
        net_pay=to_decimal(r["net_pay"]),
        payment_method=PaymentMethod(r["payment_method"]) if r.get("payment_method") else None,
        payment_date=r.get("payment_date"),
        transaction_ref=r.get("transaction_ref"),
        notes=r.get("notes"),
        created_by=r.get("created_by"),
    )


class MySQLPayrollRepository(PayrollRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, payroll_id: int) -> Optional[PayrollRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM payroll_records WHERE payroll_id=%s", (int(payroll_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list(self, filters: PayrollFilters) -> Sequence[PayrollRecord]:
        clauses: list[str] = []
        params: list[object] = []
        if filters.employee_id is not None:
            clauses.append("employee_id=%s")
            params.append(int(filters.employee_id))
        if filters.status is not None:
            clauses.append("status=%s")
            params.append(filters.status.value)
        if filters.payment_method is not None:
            clauses.append("payment_method=%s")
            params.append(filters.payment_method.value)
        if filters.date_from is not None:
            clauses.append("pay_period_start >= %s")
            params.append(filters.date_from)
        if filters.date_to is not None:
            clauses.append("pay_period_end <= %s")
            params.append(filters.date_to)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM payroll_records {build_where(clauses)} ORDER BY created_at DESC",
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO payroll_records(
                    employee_id, pay_period_start, pay_period_end, run_date, status,
                    base_salary, gross_pay, deductions_total, net_pay, payment_method, notes, created_by
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(employee_id),
                    pay_period_start,
                    pay_period_end,
                    run_date,
                    PayrollStatus.PENDING.value,
                    base_salary,
                    gross_pay,
                    deductions_total,
                    net_pay,
                    payment_method.value if payment_method else None,
                    notes,
                    created_by,
                ),
            )
            return int(cur.lastrowid)

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE payroll_records
                SET base_salary=%s, gross_pay=%s, deductions_total=%s, net_pay=%s,
                    payment_method=%s, notes=%s
                WHERE payroll_id=%s
                """,
                (
                    base_salary,
                    gross_pay,
                    deductions_total,
                    net_pay,
                    payment_method.value if payment_method else None,
                    notes,
                    int(payroll_id),
                ),
            )
            return cur.rowcount > 0

    def update_status(
        self,
        *,
        payroll_id: int,
        status: PayrollStatus,
        payment_date: Optional[datetime],
        transaction_ref: Optional[str] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE payroll_records
                SET status=%s, payment_date=%s, transaction_ref=COALESCE(%s, transaction_ref)
                WHERE payroll_id=%s
                """,
                (status.value, payment_date, transaction_ref, int(payroll_id)),
            )
            return cur.rowcount > 0

    def delete(self, payroll_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM payroll_records WHERE payroll_id=%s", (int(payroll_id),))
            return cur.rowcount > 0
