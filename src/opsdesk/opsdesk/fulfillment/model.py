from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import HandoverStatus, PackingStatus, PhotoStatus


@dataclass(frozen=True)
class PackingOrder:
    packing_id: int
    order_number: Optional[str] = None
    product_name: Optional[str] = None
    variant: Optional[str] = None
    color: Optional[str] = None
    main_photo: Optional[str] = None
    polaroids: tuple[str, ...] = ()
    back_engraving_type: Optional[str] = None
    back_engraving_value: Optional[str] = None
    status: PackingStatus = PackingStatus.PENDING
    packer: Optional[str] = None
    packed_at: Optional[datetime] = None
    customer: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = 1
    notes: Optional[str] = None
    main_photo_status: PhotoStatus = PhotoStatus.MISSING
    polaroid_count: int = 0
    imported_at: Optional[datetime] = None


@dataclass(frozen=True)
class PackingFilters:
    search: Optional[str] = None
    status: Optional[PackingStatus] = None
    packer: Optional[str] = None
    sku: Optional[str] = None
    variant: Optional[str] = None


@dataclass(frozen=True)
class PackingSort:
    field: str = "order_number"
    descending: bool = False


@dataclass(frozen=True)
class HandoverItem:
    item_id: int
    awb_number: str
    courier_name: str
    scanned_at: datetime
    order_number: Optional[str] = None
    status: HandoverStatus = HandoverStatus.SCANNED
    scanned_by: Optional[int] = None
    handed_over_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class HandoverSummary:
    day: Optional[date]
    courier: Optional[str]
    total: int
    by_status: dict[str, int] = field(default_factory=dict)
    by_courier: dict[str, int] = field(default_factory=dict)
