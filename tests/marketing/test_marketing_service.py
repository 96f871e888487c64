from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from opsdesk.core.enums import CreatorPaymentStatus, CreatorStatus
from opsdesk.core.exceptions import NotFoundError, ValidationError
from opsdesk.marketing.model import Creator, CreatorPayment
from opsdesk.marketing.service import MarketingService


class InMemoryCreators:
    def __init__(self):
        self.creators: dict[int, Creator] = {}

    def get_by_id(self, creator_id):
        return self.creators.get(creator_id)

    def list(self, *, status=None):
        return [c for c in self.creators.values() if status in (None, c.status)]

    def create(self, creator: Creator) -> int:
        creator_id = len(self.creators) + 1
        self.creators[creator_id] = replace(creator, creator_id=creator_id)
        return creator_id

    def update(self, creator: Creator) -> bool:
        self.creators[creator.creator_id] = creator
        return True


class InMemoryPayments:
    def __init__(self):
        self.payments: dict[int, CreatorPayment] = {}

    def get_by_id(self, payment_id):
        return self.payments.get(payment_id)

    def list(self, *, creator_id=None):
        return [p for p in self.payments.values() if creator_id in (None, p.creator_id)]

    def create(self, payment: CreatorPayment) -> int:
        payment_id = len(self.payments) + 1
        self.payments[payment_id] = replace(payment, payment_id=payment_id)
        return payment_id

    def update_payment(self, payment_id, *, amount_paid, status, paid_date) -> bool:
        self.payments[payment_id] = replace(
            self.payments[payment_id], amount_paid=amount_paid, status=status, paid_date=paid_date
        )
        return True

    def mark_overdue(self, *, today) -> int:
        count = 0
        for pid, p in self.payments.items():
            if p.status in (CreatorPaymentStatus.PENDING, CreatorPaymentStatus.PARTIAL) and p.due_date < today:
                self.payments[pid] = replace(p, status=CreatorPaymentStatus.OVERDUE)
                count += 1
        return count


def _service():
    return MarketingService(InMemoryCreators(), InMemoryPayments())


def _creator(**overrides):
    values = dict(creator_id=0, name=" Priya ", role="UGC Creator", base_rate="1500", currency="inr", rating=8)
    values.update(overrides)
    return Creator(**values)


def test_create_creator_normalizes_fields():
    svc = _service()

    creator_id = svc.create_creator(_creator(email=" priya@example.com "))

    creator = svc.get_creator(creator_id)
    assert creator.name == "Priya"
    assert creator.currency == "INR"
    assert creator.base_rate == Decimal("1500.00")
    assert creator.email == "priya@example.com"
    assert creator.status == CreatorStatus.ONBOARDING


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"role": "Juggler"}, "role"),
        ({"payment_cycle": "Yearly"}, "payment cycle"),
        ({"rating": 11}, "Rating"),
        ({"currency": "RUPEE"}, "Currency"),
        ({"email": "priya"}, "email"),
        ({"base_rate": "-5"}, "Base rate"),
    ],
)
def test_create_creator_validation(overrides, message):
    with pytest.raises(ValidationError, match=message):
        _service().create_creator(_creator(**overrides))


def test_update_creator():
    svc = _service()
    creator_id = svc.create_creator(_creator())

    updated = svc.update_creator(creator_id, {"status": "Active", "rating": 9})

    assert updated.status == CreatorStatus.ACTIVE
    assert svc.list_creators(CreatorStatus.ACTIVE)[0].rating == 9
    with pytest.raises(ValidationError, match="Cannot update"):
        svc.update_creator(creator_id, {"creator_id": 5})
    with pytest.raises(ValidationError, match="status"):
        svc.update_creator(creator_id, {"status": "Retired"})
    with pytest.raises(NotFoundError):
        svc.update_creator(99, {"rating": 5})


def test_partial_then_full_payment():
    svc = _service()
    creator_id = svc.create_creator(_creator())
    payment_id = svc.record_payment(creator_id, description="March reels", amount="3000", due_date=date(2026, 3, 31))

    partial = svc.pay(payment_id, "1000", today=date(2026, 3, 10))
    assert partial.status == CreatorPaymentStatus.PARTIAL
    assert partial.outstanding == Decimal("2000.00")
    assert partial.paid_date is None

    with pytest.raises(ValidationError, match="exceeds outstanding"):
        svc.pay(payment_id, "2500", today=date(2026, 3, 11))

    paid = svc.pay(payment_id, "2000", today=date(2026, 3, 12))
    assert paid.status == CreatorPaymentStatus.PAID
    assert paid.paid_date == date(2026, 3, 12)
    with pytest.raises(ValidationError, match="settled"):
        svc.pay(payment_id, "1", today=date(2026, 3, 13))


def test_record_payment_validation():
    svc = _service()
    creator_id = svc.create_creator(_creator())

    with pytest.raises(ValidationError):
        svc.record_payment(creator_id, description="x", amount="0", due_date=date(2026, 3, 1))
    with pytest.raises(NotFoundError):
        svc.record_payment(99, description="x", amount="10", due_date=date(2026, 3, 1))
    payment_id = svc.record_payment(creator_id, description="x", amount="10", due_date=date(2026, 3, 1), currency="usd")
    assert svc.payments(creator_id)[0].currency == "USD"
    assert payment_id == 1


def test_overdue_and_outstanding_summary():
    svc = _service()
    creator_id = svc.create_creator(_creator())
    svc.record_payment(creator_id, description="Feb", amount="1000", due_date=date(2026, 2, 28))
    svc.record_payment(creator_id, description="Mar", amount="500", due_date=date(2026, 3, 31))
    svc.record_payment(creator_id, description="Ad", amount="200", due_date=date(2026, 3, 31), currency="USD")
    svc.pay(2, "100", today=date(2026, 3, 2))

    summary = svc.outstanding_summary(date(2026, 3, 2))
    assert summary["INR"]["total_due"] == Decimal("1500.00")
    assert summary["INR"]["paid"] == Decimal("100.00")
    assert summary["INR"]["outstanding"] == Decimal("1400.00")
    assert summary["INR"]["overdue_count"] == 1
    assert summary["USD"]["overdue_count"] == 0

    assert svc.refresh_overdue(date(2026, 3, 2)) == 1
    assert svc.payments()[0].status == CreatorPaymentStatus.OVERDUE
