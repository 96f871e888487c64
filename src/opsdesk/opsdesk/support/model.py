from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import FeedbackStatus, TicketPriority, TicketStatus


@dataclass(frozen=True)
class SupportTicket:
    id: int
    ticket_id: str
    summary: str
    status: TicketStatus = TicketStatus.NEW
    priority: TicketPriority = TicketPriority.NORMAL
    description: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    order_id: Optional[str] = None
    issue_type: Optional[str] = None
    is_urgent: bool = False
    source: Optional[str] = None
    assigned_to: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class TicketFilters:
    query: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    tab: Optional[TicketStatus] = None


@dataclass(frozen=True)
class Feedback:
    feedback_id: int
    feedback_type: str
    subject: str
    message: str
    created_at: datetime
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    priority: TicketPriority = TicketPriority.NORMAL
    status: FeedbackStatus = FeedbackStatus.OPEN
    order_id: Optional[str] = None
    assigned_to: Optional[int] = None
    rating: Optional[int] = None
    resolution_notes: Optional[str] = None
    resolution_time_hours: Optional[Decimal] = None
    resolved_at: Optional[datetime] = None


@dataclass(frozen=True)
class FeedbackResponse:
    response_id: int
    feedback_id: int
    responder_id: int
    message: str
    created_at: datetime
