from __future__ import annotations

import csv
import logging
from collections import Counter
from datetime import date, datetime
from io import StringIO
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.pagination import Page, paginate
from ..common.validators import optional_text, require_non_empty
from ..core.constants import DEFAULT_PAGE_SIZE
from ..core.enums import HandoverStatus, PackingStatus
from ..core.exceptions import NotFoundError, ValidationError
from .model import HandoverItem, HandoverSummary, PackingFilters, PackingOrder, PackingSort
from .parser import PackingSheetParser
from .repository import HandoverRepository, PackingRepository

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = frozenset(
    {
        "order_number",
        "product_name",
        "variant",
        "color",
        "status",
        "packer",
        "packed_at",
        "customer",
        "sku",
        "quantity",
        "main_photo_status",
        "polaroid_count",
    }
)
UNIQUE_VALUE_FIELDS = frozenset({"status", "packer", "sku", "variant", "color", "customer"})

PACKING_EXPORT_HEADERS = (
    "Order Number",
    "Product Name",
    "Variant",
    "Color",
    "Status",
    "Packer",
    "Customer",
    "SKU",
    "Quantity",
    "Main Photo",
    "Main Photo Status",
    "Polaroids",
    "Polaroid Count",
    "Back Engraving Type",
    "Back Engraving Value",
    "Packed At",
    "Notes",
)

HANDOVER_EXPORT_HEADERS = ("AWB Number", "Order Number", "Courier", "Status", "Scanned At", "Handed Over At", "Notes")


def _value(v) -> str:
    if v is None:
        return ""
    if isinstance(v, datetime):
        return v.isoformat()
    return str(getattr(v, "value", v))


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    out = StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_value(v) for v in row])
    return out.getvalue()


def _sorted(orders: list[PackingOrder], sort: PackingSort) -> list[PackingOrder]:
    if sort.field not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by {sort.field}")

    def key(o: PackingOrder):
        v = getattr(o, sort.field)
        return getattr(v, "value", v)

    present = [o for o in orders if key(o) not in (None, "")]
    missing = [o for o in orders if key(o) in (None, "")]
    # undefined values stay last in both directions
    return sorted(present, key=key, reverse=sort.descending) + missing


def _matches(o: PackingOrder, f: PackingFilters) -> bool:
    if f.search:
        needle = f.search.lower()
        haystack = (o.order_number, o.product_name, o.variant, o.customer, o.sku)
        if not any(needle in (v or "").lower() for v in haystack):
            return False
    if f.status and o.status != f.status:
        return False
    if f.packer and o.packer != f.packer:
        return False
    if f.sku and o.sku != f.sku:
        return False
    if f.variant and o.variant != f.variant:
        return False
    return True


class PackingService:
    def __init__(self, packing: PackingRepository, *, parser: Optional[PackingSheetParser] = None):
        self._packing = packing
        self._parser = parser or PackingSheetParser()

    def import_sheet(
        self, content: bytes, filename: str, *, replace: bool = False, now: Optional[datetime] = None
    ) -> dict:
        orders = self._parser.parse(content, filename)
        if replace:
            removed = self._packing.clear()
            logger.info("Cleared %s packing orders before import", removed)
        added = self._packing.add_many(orders, imported_at=now or now_local())
        counts = Counter(o.status.value for o in orders)
        logger.info("Imported %s packing orders from %s (replace=%s)", added, filename, replace)
        return {"imported": added, "replaced": replace, "by_status": dict(counts)}

    def update_status(
        self, packing_id: int, status: PackingStatus, *, packer: Optional[str] = None, now: Optional[datetime] = None
    ) -> None:
        if not self.bulk_update_status([packing_id], status, packer=packer, now=now):
            raise NotFoundError("Packing order not found")

    def bulk_update_status(
        self,
        packing_ids: Sequence[int],
        status: PackingStatus,
        *,
        packer: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        if not packing_ids:
            raise ValidationError("No orders selected")
        if status == PackingStatus.PACKED:
            return self._packing.update_status(
                packing_ids, status, packer=optional_text(packer), packed_at=now or now_local()
            )
        return self._packing.update_status(packing_ids, status, packer=None, packed_at=None)

    def delete(self, packing_id: int) -> None:
        if not self._packing.delete(packing_id):
            raise NotFoundError("Packing order not found")

    def filtered(self, filters: PackingFilters, sort: Optional[PackingSort] = None) -> list[PackingOrder]:
        orders = [o for o in self._packing.list_all() if _matches(o, filters)]
        return _sorted(orders, sort) if sort else orders

    def list(
        self,
        filters: PackingFilters,
        sort: Optional[PackingSort] = None,
        *,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Page[PackingOrder]:
        return paginate(self.filtered(filters, sort), page, page_size)

    def unique_values(self, field: str) -> list[str]:
        if field not in UNIQUE_VALUE_FIELDS:
            raise ValidationError(f"Unsupported field: {field}")
        values = {_value(getattr(o, field)) for o in self._packing.list_all()}
        values.discard("")
        return sorted(values)

    @staticmethod
    def stats(orders: Sequence[PackingOrder]) -> dict:
        counts = Counter(o.status for o in orders)
        total = len(orders)
        packed = counts[PackingStatus.PACKED]
        return {
            "total": total,
            "pending": counts[PackingStatus.PENDING],
            "packed": packed,
            "disputes": counts[PackingStatus.DISPUTE],
            "invalid": counts[PackingStatus.INVALID],
            "missing_photo": counts[PackingStatus.MISSING_PHOTO],
            "packed_percentage": round(packed / total * 100) if total else 0,
        }

    @staticmethod
    def export_csv(orders: Sequence[PackingOrder]) -> str:
        if not orders:
            return ""
        return _write_csv(
            PACKING_EXPORT_HEADERS,
            (
                (
                    o.order_number,
                    o.product_name,
                    o.variant,
                    o.color,
                    o.status,
                    o.packer,
                    o.customer,
                    o.sku,
                    o.quantity,
                    o.main_photo,
                    o.main_photo_status,
                    "; ".join(o.polaroids),
                    o.polaroid_count,
                    o.back_engraving_type,
                    o.back_engraving_value,
                    o.packed_at,
                    o.notes,
                )
                for o in orders
            ),
        )

    @staticmethod
    def export_filename(prefix: str = "orders", *, now: Optional[datetime] = None) -> str:
        now = now or now_local()
        return f"{prefix}_filtered_{now:%Y-%m-%d}_{now:%H-%M-%S}.csv"


class CourierHandoverService:
    def __init__(self, handovers: HandoverRepository):
        self._handovers = handovers

    def scan(
        self,
        *,
        awb_number: str,
        courier_name: str,
        order_number: Optional[str] = None,
        notes: Optional[str] = None,
        scanned_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        awb_number = require_non_empty(awb_number, "AWB number")
        courier_name = require_non_empty(courier_name, "Courier")
        order_number = optional_text(order_number)

        if self._handovers.find_active(courier_name=courier_name, awb_number=awb_number, order_number=order_number):
            raise ValidationError("Duplicate item detected: this order/AWB has already been scanned")

        item_id = self._handovers.create(
            HandoverItem(
                item_id=0,
                awb_number=awb_number,
                order_number=order_number,
                courier_name=courier_name,
                scanned_at=now or now_local(),
                scanned_by=scanned_by,
                notes=optional_text(notes),
            )
        )
        logger.info("Scanned AWB %s for %s", awb_number, courier_name)
        return item_id

    def mark_handed_over(self, item_ids: Sequence[int], *, now: Optional[datetime] = None) -> int:
        if not item_ids:
            raise ValidationError("No items selected")
        return self._handovers.set_status(item_ids, HandoverStatus.HANDED_OVER, handed_over_at=now or now_local())

    def cancel(self, item_id: int) -> None:
        if not self._handovers.set_status([item_id], HandoverStatus.CANCELLED):
            raise NotFoundError("Handover item not found")

    def delete(self, item_id: int) -> None:
        if not self._handovers.delete(item_id):
            raise NotFoundError("Handover item not found")

    def list(self, *, day: Optional[date] = None, courier_name: Optional[str] = None) -> Sequence[HandoverItem]:
        return self._handovers.list(day=day, courier_name=optional_text(courier_name))

    def summary(self, day: Optional[date] = None, courier_name: Optional[str] = None) -> HandoverSummary:
        items = self.list(day=day, courier_name=courier_name)
        return HandoverSummary(
            day=day,
            courier=optional_text(courier_name),
            total=len(items),
            by_status=dict(Counter(i.status.value for i in items)),
            by_courier=dict(Counter(i.courier_name for i in items)),
        )

    @staticmethod
    def export_csv(items: Sequence[HandoverItem]) -> str:
        return _write_csv(
            HANDOVER_EXPORT_HEADERS,
            (
                (i.awb_number, i.order_number, i.courier_name, i.status, i.scanned_at, i.handed_over_at, i.notes)
                for i in items
            ),
        )
