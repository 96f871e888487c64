from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import is_valid_email, optional_text, require_in_range, require_non_empty
from ..core.enums import FeedbackStatus, TicketPriority, TicketStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from .model import Feedback, FeedbackResponse, SupportTicket, TicketFilters
from .repository import FeedbackRepository, TicketRepository

logger = logging.getLogger(__name__)

TICKET_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.NEW: frozenset({TicketStatus.OPEN, TicketStatus.WAITING, TicketStatus.SOLVED, TicketStatus.CLOSED}),
    TicketStatus.OPEN: frozenset({TicketStatus.WAITING, TicketStatus.SOLVED, TicketStatus.CLOSED}),
    TicketStatus.WAITING: frozenset({TicketStatus.OPEN, TicketStatus.SOLVED, TicketStatus.CLOSED}),
    TicketStatus.SOLVED: frozenset({TicketStatus.OPEN, TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset({TicketStatus.OPEN}),
}

FEEDBACK_TYPES = ("complaint", "suggestion", "compliment", "inquiry")
HOURS = Decimal("0.01")
TICKET_ID_ATTEMPTS = 3


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    return target in TICKET_TRANSITIONS.get(current, frozenset())


def ticket_prefix(now: datetime) -> str:
    return f"TKT-{now:%Y%m%d}-"


class SupportService:
    def __init__(self, tickets: TicketRepository):
        self._tickets = tickets

    def get(self, id: int) -> SupportTicket:
        ticket = self._tickets.get_by_id(id)
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    def create(
        self,
        *,
        summary: str,
        description: Optional[str] = None,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        order_id: Optional[str] = None,
        issue_type: Optional[str] = None,
        priority: Optional[TicketPriority] = None,
        is_urgent: bool = False,
        source: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SupportTicket:
        summary = require_non_empty(summary, "Summary")
        email = optional_text(email)
        phone = optional_text(phone)
        if not email and not phone:
            raise ValidationError("Email or phone is required")
        if email and not is_valid_email(email):
            raise ValidationError("Invalid email address")

        if priority is None:
            priority = TicketPriority.URGENT if is_urgent else TicketPriority.NORMAL

        now = now or now_local()
        prefix = ticket_prefix(now)
        ticket = SupportTicket(
            id=0,
            ticket_id="",
            summary=summary,
            description=optional_text(description),
            full_name=optional_text(full_name),
            email=email,
            phone=phone,
            order_id=optional_text(order_id),
            issue_type=optional_text(issue_type),
            priority=priority,
            is_urgent=bool(is_urgent),
            source=optional_text(source),
            created_at=now,
            updated_at=now,
        )
        for attempt in range(TICKET_ID_ATTEMPTS):
            ticket = replace(ticket, ticket_id=f"{prefix}{self._tickets.last_sequence(prefix) + 1:04d}")
            try:
                new_id = self._tickets.create(ticket)
                break
            except ConflictError:
                if attempt == TICKET_ID_ATTEMPTS - 1:
                    raise
                logger.warning("Ticket id %s taken, retrying", ticket.ticket_id)
        logger.info("Created support ticket %s (priority=%s)", ticket.ticket_id, priority.value)
        return replace(ticket, id=new_id)

    def update_status(self, id: int, status: TicketStatus, *, now: Optional[datetime] = None) -> None:
        ticket = self.get(id)
        if ticket.status == status:
            return
        if not can_transition(ticket.status, status):
            raise ValidationError(f"Cannot move ticket from {ticket.status.value} to {status.value}")
        self._tickets.update_status(id, status, updated_at=now or now_local())
        logger.info("Ticket %s: %s -> %s", ticket.ticket_id, ticket.status.value, status.value)

    def bulk_update_status(self, ids: Sequence[int], status: TicketStatus, *, now: Optional[datetime] = None) -> dict:
        """Apply a status to many tickets; invalid transitions are reported, not raised."""

        if not ids:
            raise ValidationError("No tickets selected")
        updated: list[int] = []
        failed: list[dict] = []
        for id in ids:
            try:
                self.update_status(id, status, now=now)
            except (ValidationError, NotFoundError) as e:
                failed.append({"id": id, "message": str(e)})
            else:
                updated.append(id)
        return {"updated": updated, "failed": failed}

    def assign_priority(self, id: int, priority: TicketPriority, *, now: Optional[datetime] = None) -> None:
        if not self._tickets.update_priority(id, priority, updated_at=now or now_local()):
            raise NotFoundError("Ticket not found")

    def search(self, filters: TicketFilters) -> list[SupportTicket]:
        needle = (filters.query or "").strip().lower()
        out = []
        for t in self._tickets.list_all():
            if needle:
                fields = (t.ticket_id, t.summary, t.full_name, t.email, t.order_id)
                if not any(needle in (f or "").lower() for f in fields):
                    continue
            if filters.status and t.status != filters.status:
                continue
            if filters.priority and t.priority != filters.priority:
                continue
            if filters.tab and t.status != filters.tab:
                continue
            out.append(t)
        return out

    def kpis(self) -> dict:
        tickets = self._tickets.list_all()
        counts = Counter(t.status for t in tickets)
        return {
            "total": len(tickets),
            "new": counts[TicketStatus.NEW],
            "open": counts[TicketStatus.OPEN],
            "waiting": counts[TicketStatus.WAITING],
            "solved": counts[TicketStatus.SOLVED],
            "high_priority": sum(1 for t in tickets if t.priority in (TicketPriority.HIGH, TicketPriority.URGENT)),
        }


class FeedbackService:
    def __init__(self, feedback: FeedbackRepository):
        self._feedback = feedback

    def get(self, feedback_id: int) -> Feedback:
        fb = self._feedback.get_by_id(feedback_id)
        if not fb:
            raise NotFoundError("Feedback not found")
        return fb

    def list(self, *, status: Optional[FeedbackStatus] = None, feedback_type: Optional[str] = None) -> list[Feedback]:
        return [
            fb
            for fb in self._feedback.list_all()
            if (status is None or fb.status == status) and (not feedback_type or fb.feedback_type == feedback_type)
        ]

    def create(
        self,
        *,
        feedback_type: str,
        subject: str,
        message: str,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        priority: TicketPriority = TicketPriority.NORMAL,
        order_id: Optional[str] = None,
        rating: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        if feedback_type not in FEEDBACK_TYPES:
            raise ValidationError(f"Feedback type must be one of: {', '.join(FEEDBACK_TYPES)}")
        customer_email = optional_text(customer_email)
        if customer_email and not is_valid_email(customer_email):
            raise ValidationError("Invalid email address")
        if rating is not None:
            rating = require_in_range(int(rating), "Rating", 1, 5)

        return self._feedback.create(
            Feedback(
                feedback_id=0,
                feedback_type=feedback_type,
                subject=require_non_empty(subject, "Subject"),
                message=require_non_empty(message, "Message"),
                customer_name=optional_text(customer_name),
                customer_email=customer_email,
                priority=priority,
                order_id=optional_text(order_id),
                rating=rating,
                created_at=now or now_local(),
            )
        )

    def respond(
        self, feedback_id: int, *, responder_id: int, message: str, now: Optional[datetime] = None
    ) -> int:
        fb = self.get(feedback_id)
        if fb.status == FeedbackStatus.RESOLVED:
            raise ValidationError("Feedback is already resolved")
        response_id = self._feedback.add_response(
            feedback_id, responder_id, require_non_empty(message, "Message"), created_at=now or now_local()
        )
        if fb.status == FeedbackStatus.OPEN:
            self._feedback.update_status(feedback_id, FeedbackStatus.IN_PROGRESS)
        return response_id

    def responses(self, feedback_id: int) -> Sequence[FeedbackResponse]:
        self.get(feedback_id)
        return self._feedback.list_responses(feedback_id)

    def resolve(
        self, feedback_id: int, *, resolution_notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> Decimal:
        fb = self.get(feedback_id)
        if fb.status == FeedbackStatus.RESOLVED:
            raise ValidationError("Feedback is already resolved")
        now = now or now_local()
        seconds = max(0.0, (now - fb.created_at).total_seconds())
        hours = (Decimal(str(seconds)) / Decimal(3600)).quantize(HOURS, rounding=ROUND_HALF_UP)
        self._feedback.resolve(
            feedback_id,
            resolution_notes=optional_text(resolution_notes),
            resolved_at=now,
            resolution_time_hours=hours,
        )
        logger.info("Feedback %s resolved in %s hours", feedback_id, hours)
        return hours

    def stats(self) -> dict:
        items = self._feedback.list_all()
        counts = Counter(fb.status for fb in items)
        resolved_hours = [fb.resolution_time_hours for fb in items if fb.resolution_time_hours is not None]
        ratings = [fb.rating for fb in items if fb.rating]
        return {
            "total": len(items),
            "open": counts[FeedbackStatus.OPEN],
            "in_progress": counts[FeedbackStatus.IN_PROGRESS],
            "resolved": counts[FeedbackStatus.RESOLVED],
            "by_type": dict(Counter(fb.feedback_type for fb in items)),
            "average_resolution_hours": (
                (sum(resolved_hours, Decimal(0)) / len(resolved_hours)).quantize(HOURS) if resolved_hours else Decimal(0)
            ),
            "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else 0,
        }
