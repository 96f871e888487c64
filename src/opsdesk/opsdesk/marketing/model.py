from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import CreatorPaymentStatus, CreatorStatus


@dataclass(frozen=True)
class Creator:
    creator_id: int
    name: str
    role: str
    status: CreatorStatus = CreatorStatus.ONBOARDING
    email: Optional[str] = None
    phone: Optional[str] = None
    base_rate: Decimal = Decimal("0")
    currency: str = "INR"
    rate_unit: str = "per project"
    payment_cycle: str = "Per Project"
    rating: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class CreatorPayment:
    payment_id: int
    creator_id: int
    description: str
    amount: Decimal
    currency: str
    due_date: date
    amount_paid: Decimal = Decimal("0")
    status: CreatorPaymentStatus = CreatorPaymentStatus.PENDING
    paid_date: Optional[date] = None

    @property
    def outstanding(self) -> Decimal:
        return max(Decimal("0"), self.amount - self.amount_paid)
