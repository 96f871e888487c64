from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from ..core.enums import CreatorPaymentStatus, CreatorStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone, in_clause, to_decimal
from .model import Creator, CreatorPayment
from .repository import CreatorPaymentRepository, CreatorRepository

_CREATOR_SELECT = """
    SELECT creator_id, name, role, status, email, phone, base_rate, currency, rate_unit,
           payment_cycle, rating, notes, created_at
    FROM creators
"""

_PAYMENT_SELECT = """
    SELECT payment_id, creator_id, description, amount, amount_paid, currency, status, due_date, paid_date
    FROM creator_payments
"""


def _to_creator(r: dict) -> Creator:
    return Creator(
        creator_id=int(r["creator_id"]),
        name=r["name"],
        role=r["role"],
        status=CreatorStatus(r["status"]),
        email=r.get("email"),
        phone=r.get("phone"),
        base_rate=to_decimal(r.get("base_rate")),
        currency=r["currency"],
        rate_unit=r["rate_unit"],
        payment_cycle=r["payment_cycle"],
        rating=r.get("rating"),
        notes=r.get("notes"),
        created_at=r.get("created_at"),
    )


def _to_payment(r: dict) -> CreatorPayment:
    return CreatorPayment(
        payment_id=int(r["payment_id"]),
        creator_id=int(r["creator_id"]),
        description=r["description"],
        amount=to_decimal(r["amount"]),
        amount_paid=to_decimal(r.get("amount_paid")),
        currency=r["currency"],
        status=CreatorPaymentStatus(r["status"]),
        due_date=r["due_date"],
        paid_date=r.get("paid_date"),
    )


class MySQLCreatorRepository(CreatorRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, creator_id: int) -> Optional[Creator]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_CREATOR_SELECT} WHERE creator_id=%s", (int(creator_id),))
            r = fetchone(cur)
            return _to_creator(r) if r else None

    def list(self, *, status: Optional[CreatorStatus] = None) -> Sequence[Creator]:
        clauses: list[str] = []
        params: list[object] = []
        if status is not None:
            clauses.append("status=%s")
            params.append(status.value)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_CREATOR_SELECT} {build_where(clauses)} ORDER BY name", tuple(params))
            return [_to_creator(r) for r in fetchall(cur)]

    def create(self, creator: Creator) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO creators(name, role, status, email, phone, base_rate, currency, rate_unit,
                                     payment_cycle, rating, notes)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    creator.name,
                    creator.role,
                    creator.status.value,
                    creator.email,
                    creator.phone,
                    creator.base_rate,
                    creator.currency,
                    creator.rate_unit,
                    creator.payment_cycle,
                    creator.rating,
                    creator.notes,
                ),
            )
            return int(cur.lastrowid)

    def update(self, creator: Creator) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE creators
                SET name=%s, role=%s, status=%s, email=%s, phone=%s, base_rate=%s, currency=%s,
                    rate_unit=%s, payment_cycle=%s, rating=%s, notes=%s
                WHERE creator_id=%s
                """,
                (
                    creator.name,
                    creator.role,
                    creator.status.value,
                    creator.email,
                    creator.phone,
                    creator.base_rate,
                    creator.currency,
                    creator.rate_unit,
                    creator.payment_cycle,
                    creator.rating,
                    creator.notes,
                    creator.creator_id,
                ),
            )
            return cur.rowcount > 0


class MySQLCreatorPaymentRepository(CreatorPaymentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, payment_id: int) -> Optional[CreatorPayment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_PAYMENT_SELECT} WHERE payment_id=%s", (int(payment_id),))
            r = fetchone(cur)
            return _to_payment(r) if r else None

    def list(self, *, creator_id: Optional[int] = None) -> Sequence[CreatorPayment]:
        clauses: list[str] = []
        params: list[object] = []
        if creator_id is not None:
            clauses.append("creator_id=%s")
            params.append(int(creator_id))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_PAYMENT_SELECT} {build_where(clauses)} ORDER BY due_date", tuple(params))
            return [_to_payment(r) for r in fetchall(cur)]

    def create(self, payment: CreatorPayment) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO creator_payments(creator_id, description, amount, amount_paid, currency, status, due_date)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    payment.creator_id,
                    payment.description,
                    payment.amount,
                    payment.amount_paid,
                    payment.currency,
                    payment.status.value,
                    payment.due_date,
                ),
            )
            return int(cur.lastrowid)

    def update_payment(
        self,
        payment_id: int,
        *,
        amount_paid: Decimal,
        status: CreatorPaymentStatus,
        paid_date: Optional[date],
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE creator_payments SET amount_paid=%s, status=%s, paid_date=%s WHERE payment_id=%s",
                (amount_paid, status.value, paid_date, int(payment_id)),
            )
            return cur.rowcount > 0

    def mark_overdue(self, *, today: date) -> int:
        status_sql, statuses = in_clause(
            "status", [CreatorPaymentStatus.PENDING.value, CreatorPaymentStatus.PARTIAL.value]
        )
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE creator_payments SET status=%s WHERE {status_sql} AND due_date < %s",
                (CreatorPaymentStatus.OVERDUE.value, *statuses, today),
            )
            return int(cur.rowcount)
