from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from opsdesk.core.enums import HandoverStatus
from opsdesk.core.exceptions import NotFoundError, ValidationError
from opsdesk.fulfillment.model import HandoverItem
from opsdesk.fulfillment.service import CourierHandoverService


class InMemoryHandovers:
    def __init__(self):
        self.items: dict[int, HandoverItem] = {}

    def get_by_id(self, item_id):
        return self.items.get(item_id)

    def find_active(self, *, courier_name, awb_number, order_number):
        for i in self.items.values():
            if i.courier_name != courier_name or i.status == HandoverStatus.CANCELLED:
                continue
            if i.awb_number == awb_number or (order_number and i.order_number == order_number):
                return i
        return None

    def create(self, item: HandoverItem) -> int:
        item_id = len(self.items) + 1
        self.items[item_id] = replace(item, item_id=item_id)
        return item_id

    def set_status(self, item_ids, status, *, handed_over_at=None) -> int:
        changed = 0
        for item_id in item_ids:
            if item_id in self.items:
                self.items[item_id] = replace(self.items[item_id], status=status, handed_over_at=handed_over_at)
                changed += 1
        return changed

    def delete(self, item_id) -> bool:
        return self.items.pop(item_id, None) is not None

    def list(self, *, day=None, courier_name=None):
        return [
            i
            for i in self.items.values()
            if (day is None or i.scanned_at.date() == day) and courier_name in (None, i.courier_name)
        ]


def test_scan_rejects_duplicates_per_courier(fixed_now):
    svc = CourierHandoverService(InMemoryHandovers())
    svc.scan(awb_number="AWB1", courier_name="Delhivery", order_number="O1", now=fixed_now)

    with pytest.raises(ValidationError, match="Duplicate item detected"):
        svc.scan(awb_number="AWB1", courier_name="Delhivery", now=fixed_now)
    with pytest.raises(ValidationError, match="Duplicate item detected"):
        svc.scan(awb_number="AWB2", courier_name="Delhivery", order_number="O1", now=fixed_now)

    assert svc.scan(awb_number="AWB1", courier_name="BlueDart", now=fixed_now) == 2


def test_cancelled_item_can_be_rescanned(fixed_now):
    svc = CourierHandoverService(InMemoryHandovers())
    item_id = svc.scan(awb_number="AWB1", courier_name="Delhivery", now=fixed_now)

    svc.cancel(item_id)

    assert svc.scan(awb_number="AWB1", courier_name="Delhivery", now=fixed_now) == 2


def test_scan_requires_awb_and_courier(fixed_now):
    svc = CourierHandoverService(InMemoryHandovers())

    with pytest.raises(ValidationError):
        svc.scan(awb_number=" ", courier_name="Delhivery", now=fixed_now)
    with pytest.raises(ValidationError):
        svc.scan(awb_number="AWB1", courier_name="", now=fixed_now)


def test_handover_summary_and_export(fixed_now):
    repo = InMemoryHandovers()
    svc = CourierHandoverService(repo)
    a = svc.scan(awb_number="AWB1", courier_name="Delhivery", now=fixed_now)
    svc.scan(awb_number="AWB2", courier_name="Delhivery", now=fixed_now)
    svc.scan(awb_number="AWB3", courier_name="BlueDart", now=fixed_now)
    svc.scan(awb_number="AWB4", courier_name="BlueDart", now=fixed_now - timedelta(days=1))

    assert svc.mark_handed_over([a], now=fixed_now) == 1

    summary = svc.summary(fixed_now.date())
    assert summary.total == 3
    assert summary.by_status == {"handed_over": 1, "scanned": 2}
    assert summary.by_courier == {"Delhivery": 2, "BlueDart": 1}

    csv_text = CourierHandoverService.export_csv(svc.list(day=fixed_now.date(), courier_name="BlueDart"))
    lines = csv_text.strip().split("\n")
    assert len(lines) == 2
    assert lines[1].startswith('"AWB3","","BlueDart","scanned"')


def test_missing_items(fixed_now):
    svc = CourierHandoverService(InMemoryHandovers())

    with pytest.raises(NotFoundError):
        svc.cancel(5)
    with pytest.raises(NotFoundError):
        svc.delete(5)
    with pytest.raises(ValidationError):
        svc.mark_handed_over([], now=fixed_now)


def test_summary_for_empty_day():
    summary = CourierHandoverService(InMemoryHandovers()).summary(date(2026, 1, 1), "  ")

    assert summary.total == 0
    assert summary.courier is None
