from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import FeedbackStatus, TicketPriority, TicketStatus
from .model import Feedback, FeedbackResponse, SupportTicket


class TicketRepository(Protocol):
    def get_by_id(self, id: int) -> Optional[SupportTicket]:
        raise NotImplementedError

    def list_all(self) -> Sequence[SupportTicket]:
        raise NotImplementedError

    def last_sequence(self, prefix: str) -> int:
        """Highest numeric suffix among ticket ids starting with ``prefix``, 0 when none."""
        raise NotImplementedError

    def create(self, ticket: SupportTicket) -> int:
        """Raises ConflictError when ``ticket.ticket_id`` is already taken."""
        raise NotImplementedError

    def update_status(self, id: int, status: TicketStatus, *, updated_at: datetime) -> bool:
        raise NotImplementedError

    def update_priority(self, id: int, priority: TicketPriority, *, updated_at: datetime) -> bool:
        raise NotImplementedError


class FeedbackRepository(Protocol):
    def get_by_id(self, feedback_id: int) -> Optional[Feedback]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Feedback]:
        raise NotImplementedError

    def create(self, feedback: Feedback) -> int:
        raise NotImplementedError

    def update_status(self, feedback_id: int, status: FeedbackStatus) -> bool:
        raise NotImplementedError

    def resolve(
        self,
        feedback_id: int,
        *,
        resolution_notes: Optional[str],
        resolved_at: datetime,
        resolution_time_hours: Decimal,
    ) -> bool:
        raise NotImplementedError

    def add_response(self, feedback_id: int, responder_id: int, message: str, *, created_at: datetime) -> int:
        raise NotImplementedError

    def list_responses(self, feedback_id: int) -> Sequence[FeedbackResponse]:
        raise NotImplementedError
