from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..core.enums import CreatorPaymentStatus, CreatorStatus
from .model import Creator, CreatorPayment


class CreatorRepository(Protocol):
    def get_by_id(self, creator_id: int) -> Optional[Creator]:
        raise NotImplementedError

    def list(self, *, status: Optional[CreatorStatus] = None) -> Sequence[Creator]:
        raise NotImplementedError

    def create(self, creator: Creator) -> int:
        raise NotImplementedError

    def update(self, creator: Creator) -> bool:
        raise NotImplementedError


class CreatorPaymentRepository(Protocol):
    def get_by_id(self, payment_id: int) -> Optional[CreatorPayment]:
        raise NotImplementedError

    def list(self, *, creator_id: Optional[int] = None) -> Sequence[CreatorPayment]:
        raise NotImplementedError

    def create(self, payment: CreatorPayment) -> int:
        raise NotImplementedError

    def update_payment(
        self,
        payment_id: int,
        *,
        amount_paid: Decimal,
        status: CreatorPaymentStatus,
        paid_date: Optional[date],
    ) -> bool:
        raise NotImplementedError

    def mark_overdue(self, *, today: date) -> int:
        """Move Pending/Partial payments due before ``today`` to Overdue."""
        raise NotImplementedError
