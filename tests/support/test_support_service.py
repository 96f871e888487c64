from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from opsdesk.core.enums import FeedbackStatus, TicketPriority, TicketStatus
from opsdesk.core.exceptions import ConflictError, NotFoundError, ValidationError
from opsdesk.support.model import Feedback, FeedbackResponse, SupportTicket, TicketFilters
from opsdesk.support.service import FeedbackService, SupportService, can_transition


class InMemoryTickets:
    def __init__(self):
        self.tickets: dict[int, SupportTicket] = {}
        # last_sequence calls that miss the newest ticket, as a concurrent insert would
        self.lagging_reads = 0

    def get_by_id(self, id):
        return self.tickets.get(id)

    def list_all(self):
        return list(self.tickets.values())

    def last_sequence(self, prefix):
        seqs = sorted(int(t.ticket_id[len(prefix):]) for t in self.tickets.values() if t.ticket_id.startswith(prefix))
        if self.lagging_reads:
            self.lagging_reads -= 1
            seqs = seqs[:-1]
        return seqs[-1] if seqs else 0

    def create(self, ticket: SupportTicket) -> int:
        if any(t.ticket_id == ticket.ticket_id for t in self.tickets.values()):
            raise ConflictError("duplicate ticket id")
        new_id = len(self.tickets) + 1
        self.tickets[new_id] = replace(ticket, id=new_id)
        return new_id

    def update_status(self, id, status, *, updated_at) -> bool:
        if id not in self.tickets:
            return False
        self.tickets[id] = replace(self.tickets[id], status=status, updated_at=updated_at)
        return True

    def update_priority(self, id, priority, *, updated_at) -> bool:
        if id not in self.tickets:
            return False
        self.tickets[id] = replace(self.tickets[id], priority=priority, updated_at=updated_at)
        return True


class InMemoryFeedback:
    def __init__(self):
        self.items: dict[int, Feedback] = {}
        self.replies: list[FeedbackResponse] = []

    def get_by_id(self, feedback_id):
        return self.items.get(feedback_id)

    def list_all(self):
        return list(self.items.values())

    def create(self, fb: Feedback) -> int:
        new_id = len(self.items) + 1
        self.items[new_id] = replace(fb, feedback_id=new_id)
        return new_id

    def update_status(self, feedback_id, status) -> bool:
        self.items[feedback_id] = replace(self.items[feedback_id], status=status)
        return True

    def resolve(self, feedback_id, *, resolution_notes, resolved_at, resolution_time_hours) -> bool:
        self.items[feedback_id] = replace(
            self.items[feedback_id],
            status=FeedbackStatus.RESOLVED,
            resolution_notes=resolution_notes,
            resolved_at=resolved_at,
            resolution_time_hours=resolution_time_hours,
        )
        return True

    def add_response(self, feedback_id, responder_id, message, *, created_at) -> int:
        self.replies.append(FeedbackResponse(len(self.replies) + 1, feedback_id, responder_id, message, created_at))
        return len(self.replies)

    def list_responses(self, feedback_id):
        return [r for r in self.replies if r.feedback_id == feedback_id]


def _ticket(svc, now, **overrides):
    values = dict(summary="Wrong engraving", email="mai@example.com", order_id="A1001", now=now)
    values.update(overrides)
    return svc.create(**values)


def test_ticket_ids_are_sequential_per_day(fixed_now):
    svc = SupportService(InMemoryTickets())

    first = _ticket(svc, fixed_now)
    second = _ticket(svc, fixed_now)
    next_day = _ticket(svc, fixed_now + timedelta(days=1))

    assert first.ticket_id == "TKT-20260302-0001"
    assert second.ticket_id == "TKT-20260302-0002"
    assert next_day.ticket_id == "TKT-20260303-0001"
    assert second.id == 2
    assert first.status == TicketStatus.NEW


def test_ticket_id_taken_by_a_concurrent_insert_is_retried(fixed_now):
    tickets = InMemoryTickets()
    svc = SupportService(tickets)
    _ticket(svc, fixed_now)

    tickets.lagging_reads = 1
    second = _ticket(svc, fixed_now)

    assert second.ticket_id == "TKT-20260302-0002"
    assert len(tickets.tickets) == 2


def test_ticket_id_conflict_gives_up_after_retries(fixed_now):
    tickets = InMemoryTickets()
    svc = SupportService(tickets)
    _ticket(svc, fixed_now)

    tickets.lagging_reads = 10
    with pytest.raises(ConflictError):
        _ticket(svc, fixed_now)
    assert len(tickets.tickets) == 1


def test_urgent_flag_sets_priority(fixed_now):
    svc = SupportService(InMemoryTickets())

    assert _ticket(svc, fixed_now, is_urgent=True).priority == TicketPriority.URGENT
    assert _ticket(svc, fixed_now).priority == TicketPriority.NORMAL
    assert _ticket(svc, fixed_now, is_urgent=True, priority=TicketPriority.LOW).priority == TicketPriority.LOW


def test_ticket_contact_validation(fixed_now):
    svc = SupportService(InMemoryTickets())

    with pytest.raises(ValidationError, match="Email or phone"):
        _ticket(svc, fixed_now, email=None)
    with pytest.raises(ValidationError, match="Invalid email"):
        _ticket(svc, fixed_now, email="not-an-email")
    assert _ticket(svc, fixed_now, email=None, phone="0900000000").phone == "0900000000"


def test_transitions():
    assert can_transition(TicketStatus.NEW, TicketStatus.SOLVED)
    assert can_transition(TicketStatus.CLOSED, TicketStatus.OPEN)
    assert not can_transition(TicketStatus.CLOSED, TicketStatus.SOLVED)
    assert not can_transition(TicketStatus.OPEN, TicketStatus.NEW)


def test_update_status(fixed_now):
    repo = InMemoryTickets()
    svc = SupportService(repo)
    t = _ticket(svc, fixed_now)

    svc.update_status(t.id, TicketStatus.CLOSED, now=fixed_now)
    svc.update_status(t.id, TicketStatus.CLOSED, now=fixed_now)
    assert repo.tickets[t.id].status == TicketStatus.CLOSED

    with pytest.raises(ValidationError, match="Cannot move ticket"):
        svc.update_status(t.id, TicketStatus.WAITING, now=fixed_now)


def test_bulk_update_reports_failures(fixed_now):
    repo = InMemoryTickets()
    svc = SupportService(repo)
    a = _ticket(svc, fixed_now)
    b = _ticket(svc, fixed_now)
    svc.update_status(b.id, TicketStatus.CLOSED, now=fixed_now)

    result = svc.bulk_update_status([a.id, b.id, 99], TicketStatus.SOLVED, now=fixed_now)

    assert result["updated"] == [a.id]
    assert [f["id"] for f in result["failed"]] == [b.id, 99]
    assert result["failed"][1]["message"] == "Ticket not found"


def test_search_and_kpis(fixed_now):
    svc = SupportService(InMemoryTickets())
    _ticket(svc, fixed_now, summary="Late delivery", order_id="B7", is_urgent=True)
    _ticket(svc, fixed_now, summary="Broken frame", full_name="Nam")

    assert [t.summary for t in svc.search(TicketFilters(query="b7"))] == ["Late delivery"]
    assert [t.summary for t in svc.search(TicketFilters(query="nam"))] == ["Broken frame"]
    assert len(svc.search(TicketFilters(priority=TicketPriority.URGENT))) == 1
    assert svc.search(TicketFilters(tab=TicketStatus.SOLVED)) == []

    kpis = svc.kpis()
    assert kpis["total"] == 2
    assert kpis["new"] == 2
    assert kpis["high_priority"] == 1


def test_assign_priority_unknown_ticket(fixed_now):
    with pytest.raises(NotFoundError):
        SupportService(InMemoryTickets()).assign_priority(1, TicketPriority.HIGH, now=fixed_now)


def _feedback(svc, now, **overrides):
    values = dict(feedback_type="complaint", subject="Scratched mug", message="Arrived damaged", rating=2, now=now)
    values.update(overrides)
    return svc.create(**values)


def test_feedback_validation(fixed_now):
    svc = FeedbackService(InMemoryFeedback())

    with pytest.raises(ValidationError, match="Feedback type"):
        _feedback(svc, fixed_now, feedback_type="rant")
    with pytest.raises(ValidationError, match="Rating"):
        _feedback(svc, fixed_now, rating=6)
    with pytest.raises(ValidationError, match="Subject"):
        _feedback(svc, fixed_now, subject=" ")


def test_feedback_lifecycle(fixed_now):
    repo = InMemoryFeedback()
    svc = FeedbackService(repo)
    fb_id = _feedback(svc, fixed_now)

    svc.respond(fb_id, responder_id=3, message="Sorry, sending a replacement", now=fixed_now)
    assert repo.items[fb_id].status == FeedbackStatus.IN_PROGRESS
    assert len(svc.responses(fb_id)) == 1

    hours = svc.resolve(fb_id, resolution_notes="Replaced", now=fixed_now + timedelta(hours=5, minutes=30))
    assert hours == Decimal("5.50")
    assert repo.items[fb_id].status == FeedbackStatus.RESOLVED

    with pytest.raises(ValidationError, match="already resolved"):
        svc.respond(fb_id, responder_id=3, message="again", now=fixed_now)
    with pytest.raises(ValidationError, match="already resolved"):
        svc.resolve(fb_id, now=fixed_now)


def test_feedback_list_and_stats(fixed_now):
    svc = FeedbackService(InMemoryFeedback())
    a = _feedback(svc, fixed_now)
    _feedback(svc, fixed_now, feedback_type="compliment", rating=5)
    _feedback(svc, fixed_now, feedback_type="inquiry", rating=None)
    svc.resolve(a, now=fixed_now + timedelta(hours=2))

    assert [fb.feedback_type for fb in svc.list(status=FeedbackStatus.OPEN)] == ["compliment", "inquiry"]
    assert len(svc.list(feedback_type="complaint")) == 1

    stats = svc.stats()
    assert stats["total"] == 3
    assert stats["open"] == 2
    assert stats["resolved"] == 1
    assert stats["by_type"] == {"complaint": 1, "compliment": 1, "inquiry": 1}
    assert stats["average_resolution_hours"] == Decimal("2.00")
    assert stats["average_rating"] == 3.5
