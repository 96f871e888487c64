from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import HandoverStatus, PackingStatus
from .model import HandoverItem, PackingOrder


class PackingRepository(Protocol):
    def list_all(self) -> Sequence[PackingOrder]:
        raise NotImplementedError

    def add_many(self, orders: Sequence[PackingOrder], *, imported_at: datetime) -> int:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError

    def update_status(
        self,
        packing_ids: Sequence[int],
        status: PackingStatus,
        *,
        packer: Optional[str],
        packed_at: Optional[datetime],
    ) -> int:
        """Returns the number of matched rows, including rows already in ``status``."""

        raise NotImplementedError

    def delete(self, packing_id: int) -> bool:
        raise NotImplementedError


class HandoverRepository(Protocol):
    def get_by_id(self, item_id: int) -> Optional[HandoverItem]:
        raise NotImplementedError

    def find_active(
        self, *, courier_name: str, awb_number: str, order_number: Optional[str]
    ) -> Optional[HandoverItem]:
        """Return a non-cancelled item for the courier matching the AWB or order."""
        raise NotImplementedError

    def create(self, item: HandoverItem) -> int:
        raise NotImplementedError

    def set_status(
        self, item_ids: Sequence[int], status: HandoverStatus, *, handed_over_at: Optional[datetime] = None
    ) -> int:
        """Returns the number of matched rows."""

        raise NotImplementedError

    def delete(self, item_id: int) -> bool:
        raise NotImplementedError

    def list(self, *, day: Optional[date] = None, courier_name: Optional[str] = None) -> Sequence[HandoverItem]:
        raise NotImplementedError
