from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import is_valid_email, optional_text, require_in_range, require_non_empty
from ..core.enums import CreatorPaymentStatus, CreatorStatus
from ..core.exceptions import NotFoundError, ValidationError
from .model import Creator, CreatorPayment
from .repository import CreatorPaymentRepository, CreatorRepository

logger = logging.getLogger(__name__)

CREATOR_ROLES = (
    "Videographer",
    "Editor",
    "UGC Creator",
    "Influencer",
    "Agency",
    "Model",
    "Designer",
    "Photographer",
    "Copywriter",
    "Voice Actor",
    "Animator",
)
PAYMENT_CYCLES = ("Per Project", "Monthly", "Weekly", "Custom")
UPDATABLE_FIELDS = frozenset(
    {"name", "role", "status", "email", "phone", "base_rate", "currency", "rate_unit", "payment_cycle", "rating", "notes"}
)
OPEN_PAYMENT_STATUSES = frozenset(
    {CreatorPaymentStatus.PENDING, CreatorPaymentStatus.PARTIAL, CreatorPaymentStatus.OVERDUE}
)
CENT = Decimal("0.01")


def _amount(value, field_name: str, *, allow_zero: bool = False) -> Decimal:
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field_name} must be {'>= 0' if allow_zero else '> 0'}")
    return amount


def _currency(value: Optional[str]) -> str:
    code = (value or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError("Currency must be a 3-letter code")
    return code


def _validated(creator: Creator) -> Creator:
    name = require_non_empty(creator.name, "Name")
    if creator.role not in CREATOR_ROLES:
        raise ValidationError("Invalid creator role")
    if creator.payment_cycle not in PAYMENT_CYCLES:
        raise ValidationError("Invalid payment cycle")
    email = optional_text(creator.email)
    if email and not is_valid_email(email):
        raise ValidationError("Invalid email address")
    rating = creator.rating
    if rating is not None:
        rating = require_in_range(int(rating), "Rating", 1, 10)
    return replace(
        creator,
        name=name,
        email=email,
        phone=optional_text(creator.phone),
        base_rate=_amount(creator.base_rate, "Base rate", allow_zero=True),
        currency=_currency(creator.currency),
        rating=rating,
        notes=optional_text(creator.notes),
    )


class MarketingService:
    def __init__(self, creators: CreatorRepository, payments: CreatorPaymentRepository):
        self._creators = creators
        self._payments = payments

    def get_creator(self, creator_id: int) -> Creator:
        creator = self._creators.get_by_id(creator_id)
        if not creator:
            raise NotFoundError("Creator not found")
        return creator

    def list_creators(self, status: Optional[CreatorStatus] = None) -> Sequence[Creator]:
        return self._creators.list(status=status)

    def create_creator(self, creator: Creator) -> int:
        creator_id = self._creators.create(_validated(creator))
        logger.info("Creator %s added (%s)", creator.name, creator.role)
        return creator_id

    def update_creator(self, creator_id: int, changes: dict) -> Creator:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update: {', '.join(sorted(unknown))}")
        if "status" in changes and not isinstance(changes["status"], CreatorStatus):
            try:
                changes = {**changes, "status": CreatorStatus(changes["status"])}
            except ValueError:
                raise ValidationError("Invalid creator status")
        updated = _validated(replace(self.get_creator(creator_id), **changes))
        self._creators.update(updated)
        return updated

    def payments(self, creator_id: Optional[int] = None) -> Sequence[CreatorPayment]:
        return self._payments.list(creator_id=creator_id)

    def record_payment(
        self,
        creator_id: int,
        *,
        description: str,
        amount,
        due_date: date,
        currency: Optional[str] = None,
    ) -> int:
        creator = self.get_creator(creator_id)
        return self._payments.create(
            CreatorPayment(
                payment_id=0,
                creator_id=creator_id,
                description=require_non_empty(description, "Description"),
                amount=_amount(amount, "Amount"),
                currency=_currency(currency or creator.currency),
                due_date=due_date,
            )
        )

    def pay(self, payment_id: int, amount, *, today: Optional[date] = None) -> CreatorPayment:
        payment = self._payments.get_by_id(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.status not in OPEN_PAYMENT_STATUSES:
            raise ValidationError("Payment is already settled")

        amount = _amount(amount, "Amount")
        if amount > payment.outstanding:
            raise ValidationError(f"Amount exceeds outstanding balance of {payment.outstanding}")

        paid = payment.amount_paid + amount
        if paid >= payment.amount:
            status, paid_date = CreatorPaymentStatus.PAID, today or now_local().date()
        else:
            status, paid_date = CreatorPaymentStatus.PARTIAL, None
        self._payments.update_payment(payment_id, amount_paid=paid, status=status, paid_date=paid_date)
        logger.info("Creator payment %s: paid %s (%s)", payment_id, amount, status.value)
        return replace(payment, amount_paid=paid, status=status, paid_date=paid_date)

    def refresh_overdue(self, today: Optional[date] = None) -> int:
        count = self._payments.mark_overdue(today=today or now_local().date())
        if count:
            logger.info("Marked %s creator payments overdue", count)
        return count

    def outstanding_summary(self, today: Optional[date] = None) -> dict[str, dict]:
        today = today or now_local().date()
        summary: dict[str, dict] = {}
        for p in self._payments.list():
            row = summary.setdefault(
                p.currency,
                {"total_due": Decimal("0"), "paid": Decimal("0"), "outstanding": Decimal("0"), "overdue_count": 0},
            )
            row["total_due"] += p.amount
            row["paid"] += p.amount_paid
            row["outstanding"] += p.outstanding
            if p.status == CreatorPaymentStatus.OVERDUE or (p.status in OPEN_PAYMENT_STATUSES and p.due_date < today):
                row["overdue_count"] += 1
        return summary
