from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

import mysql.connector
from mysql.connector import errorcode

from ..core.enums import FeedbackStatus, TicketPriority, TicketStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, to_decimal
from .model import Feedback, FeedbackResponse, SupportTicket
from .repository import FeedbackRepository, TicketRepository

_TICKET_SELECT = """
    SELECT id, ticket_id, summary, description, full_name, email, phone, order_id, issue_type,
           status, priority, is_urgent, source, assigned_to, created_at, updated_at
    FROM support_tickets
"""

_FEEDBACK_SELECT = """
    SELECT feedback_id, customer_name, customer_email, feedback_type, subject, message, priority, status,
           order_id, assigned_to, rating, resolution_notes, resolution_time_hours, created_at, resolved_at
    FROM feedback_complaints
"""


def _to_ticket(r: dict) -> SupportTicket:
    return SupportTicket(
        id=int(r["id"]),
        ticket_id=r["ticket_id"],
        summary=r["summary"],
        description=r.get("description"),
        full_name=r.get("full_name"),
        email=r.get("email"),
        phone=r.get("phone"),
        order_id=r.get("order_id"),
        issue_type=r.get("issue_type"),
        status=TicketStatus(r["status"]),
        priority=TicketPriority(r["priority"]),
        is_urgent=bool(r.get("is_urgent")),
        source=r.get("source"),
        assigned_to=r.get("assigned_to"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _to_feedback(r: dict) -> Feedback:
    hours = r.get("resolution_time_hours")
    return Feedback(
        feedback_id=int(r["feedback_id"]),
        customer_name=r.get("customer_name"),
        customer_email=r.get("customer_email"),
        feedback_type=r["feedback_type"],
        subject=r["subject"],
        message=r["message"],
        priority=TicketPriority(r["priority"]),
        status=FeedbackStatus(r["status"]),
        order_id=r.get("order_id"),
        assigned_to=r.get("assigned_to"),
        rating=r.get("rating"),
        resolution_notes=r.get("resolution_notes"),
        resolution_time_hours=to_decimal(hours) if hours is not None else None,
        created_at=r["created_at"],
        resolved_at=r.get("resolved_at"),
    )


class MySQLTicketRepository(TicketRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, id: int) -> Optional[SupportTicket]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_TICKET_SELECT} WHERE id=%s", (int(id),))
            r = fetchone(cur)
            return _to_ticket(r) if r else None

    def list_all(self) -> Sequence[SupportTicket]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_TICKET_SELECT} ORDER BY created_at DESC, id DESC")
            return [_to_ticket(r) for r in fetchall(cur)]

    def last_sequence(self, prefix: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT MAX(CAST(SUBSTRING(ticket_id, %s) AS UNSIGNED)) AS seq FROM support_tickets WHERE ticket_id LIKE %s",
                (len(prefix) + 1, prefix + "%"),
            )
            r = fetchone(cur)
            return int(r["seq"]) if r and r["seq"] is not None else 0

    def create(self, ticket: SupportTicket) -> int:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO support_tickets(
                        ticket_id, summary, description, full_name, email, phone, order_id, issue_type,
                        status, priority, is_urgent, source, assigned_to, created_at, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        ticket.ticket_id,
                        ticket.summary,
                        ticket.description,
                        ticket.full_name,
                        ticket.email,
                        ticket.phone,
                        ticket.order_id,
                        ticket.issue_type,
                        ticket.status.value,
                        ticket.priority.value,
                        1 if ticket.is_urgent else 0,
                        ticket.source,
                        ticket.assigned_to,
                        ticket.created_at,
                        ticket.updated_at,
                    ),
                )
                return int(cur.lastrowid)
        except mysql.connector.IntegrityError as e:
            if e.errno == errorcode.ER_DUP_ENTRY:
                raise ConflictError(f"Ticket id {ticket.ticket_id} already exists") from e
            raise

    def update_status(self, id: int, status: TicketStatus, *, updated_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE support_tickets SET status=%s, updated_at=%s WHERE id=%s",
                (status.value, updated_at, int(id)),
            )
            return cur.rowcount > 0

    def update_priority(self, id: int, priority: TicketPriority, *, updated_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE support_tickets SET priority=%s, updated_at=%s WHERE id=%s",
                (priority.value, updated_at, int(id)),
            )
            return cur.rowcount > 0


class MySQLFeedbackRepository(FeedbackRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, feedback_id: int) -> Optional[Feedback]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_FEEDBACK_SELECT} WHERE feedback_id=%s", (int(feedback_id),))
            r = fetchone(cur)
            return _to_feedback(r) if r else None

    def list_all(self) -> Sequence[Feedback]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_FEEDBACK_SELECT} ORDER BY created_at DESC")
            return [_to_feedback(r) for r in fetchall(cur)]

    def create(self, feedback: Feedback) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO feedback_complaints(
                    customer_name, customer_email, feedback_type, subject, message, priority, status,
                    order_id, assigned_to, rating, created_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    feedback.customer_name,
                    feedback.customer_email,
                    feedback.feedback_type,
                    feedback.subject,
                    feedback.message,
                    feedback.priority.value,
                    feedback.status.value,
                    feedback.order_id,
                    feedback.assigned_to,
                    feedback.rating,
                    feedback.created_at,
                ),
            )
            return int(cur.lastrowid)

    def update_status(self, feedback_id: int, status: FeedbackStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE feedback_complaints SET status=%s WHERE feedback_id=%s",
                (status.value, int(feedback_id)),
            )
            return cur.rowcount > 0

    def resolve(
        self,
        feedback_id: int,
        *,
        resolution_notes: Optional[str],
        resolved_at: datetime,
        resolution_time_hours: Decimal,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE feedback_complaints
                SET status=%s, resolution_notes=%s, resolved_at=%s, resolution_time_hours=%s
                WHERE feedback_id=%s
                """,
                (
                    FeedbackStatus.RESOLVED.value,
                    resolution_notes,
                    resolved_at,
                    resolution_time_hours,
                    int(feedback_id),
                ),
            )
            return cur.rowcount > 0

    def add_response(self, feedback_id: int, responder_id: int, message: str, *, created_at: datetime) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO feedback_responses(feedback_id, responder_id, message, created_at) VALUES(%s,%s,%s,%s)",
                (int(feedback_id), int(responder_id), message, created_at),
            )
            return int(cur.lastrowid)

    def list_responses(self, feedback_id: int) -> Sequence[FeedbackResponse]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT response_id, feedback_id, responder_id, message, created_at
                FROM feedback_responses
                WHERE feedback_id=%s
                ORDER BY created_at, response_id
                """,
                (int(feedback_id),),
            )
            return [
                FeedbackResponse(
                    response_id=int(r["response_id"]),
                    feedback_id=int(r["feedback_id"]),
                    responder_id=int(r["responder_id"]),
                    message=r["message"],
                    created_at=r["created_at"],
                )
                for r in fetchall(cur)
            ]
