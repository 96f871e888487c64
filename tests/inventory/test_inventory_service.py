from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Optional

import pytest

from opsdesk.core.enums import MovementType
from opsdesk.core.exceptions import NotFoundError, ValidationError
from opsdesk.inventory.model import InventoryBalance, ProductVariant, StockLevel, StockMovement, Warehouse
from opsdesk.inventory.service import InventoryService, apply_movement, low_stock_limit, parse_unit_cost


class InMemoryInventory:
    def __init__(self):
        self.variants = {
            1: ProductVariant(1, "MUG-RED", "Red mug", cost=Decimal("4.50"), min_stock_level=5, reorder_quantity=50),
            2: ProductVariant(2, "MUG-BLU", "Blue mug", cost=Decimal("5.00"), reorder_quantity=20),
        }
        self.warehouses = {10: Warehouse(10, "Main", "MAIN"), 20: Warehouse(20, "Overflow", "OVF")}
        self.balances: dict[tuple[int, int], InventoryBalance] = {}
        self.movements: list[StockMovement] = []
        self.fail_commit = False

    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        return self.variants.get(variant_id)

    def get_warehouse(self, warehouse_id: int) -> Optional[Warehouse]:
        return self.warehouses.get(warehouse_id)

    def list_warehouses(self):
        return sorted(self.warehouses.values(), key=lambda w: w.name)

    def get_balance(self, variant_id: int, warehouse_id: int) -> Optional[InventoryBalance]:
        return self.balances.get((variant_id, warehouse_id))

    def save_balance(self, balance: InventoryBalance) -> None:
        self.balances[(balance.variant_id, balance.warehouse_id)] = balance

    def list_stock_levels(self, *, warehouse_id: Optional[int] = None):
        return [
            StockLevel(variant=self.variants[v], warehouse=self.warehouses[w], balance=b)
            for (v, w), b in self.balances.items()
            if warehouse_id in (None, w)
        ]

    def commit_movement(self, balances, movement: StockMovement) -> int:
        if self.fail_commit:
            raise RuntimeError("insert failed")
        for balance in balances:
            self.save_balance(balance)
        self.movements.append(replace(movement, movement_id=len(self.movements) + 1))
        return len(self.movements)

    def list_movements(self, *, variant_id=None, warehouse_id=None, limit=50):
        items = [m for m in self.movements if variant_id in (None, m.variant_id)]
        return list(reversed(items))[:limit]


def _stocked(fixed_now, qty=20):
    repo = InMemoryInventory()
    svc = InventoryService(repo)
    svc.record_movement(variant_id=1, warehouse_id=10, movement_type=MovementType.IN, qty=qty, now=fixed_now)
    return svc, repo


def test_apply_movement_rules():
    balance = InventoryBalance(variant_id=1, warehouse_id=10, on_hand=10, allocated=4, available=6)

    assert apply_movement(balance, MovementType.IN, 5).available == 11
    assert apply_movement(balance, MovementType.OUT, 6).on_hand == 4
    assert apply_movement(balance, MovementType.ADJUST, 3).available == 0
    with pytest.raises(ValidationError, match="Insufficient stock"):
        apply_movement(balance, MovementType.OUT, 7)
    assert apply_movement(balance, MovementType.OUT, 15, allow_negative=True).on_hand == 0
    with pytest.raises(ValidationError):
        apply_movement(balance, MovementType.IN, 0)
    with pytest.raises(ValidationError):
        apply_movement(balance, MovementType.ADJUST, -1)


@pytest.mark.parametrize("value,expected", [(None, None), ("", None), ("2.75", Decimal("2.75")), (3, Decimal("3"))])
def test_parse_unit_cost(value, expected):
    assert parse_unit_cost(value) == expected


@pytest.mark.parametrize("value", ["abc", "-1"])
def test_parse_unit_cost_rejects_bad_values(value):
    with pytest.raises(ValidationError):
        parse_unit_cost(value)


def test_record_in_creates_balance_and_movement(fixed_now):
    svc, repo = _stocked(fixed_now)

    balance = repo.get_balance(1, 10)
    assert balance.on_hand == 20
    assert balance.available == 20
    assert balance.last_movement_at == fixed_now
    assert repo.movements[0].movement_type == MovementType.IN


def test_unknown_variant_or_warehouse(fixed_now):
    svc = InventoryService(InMemoryInventory())

    with pytest.raises(NotFoundError):
        svc.record_movement(variant_id=9, warehouse_id=10, movement_type=MovementType.IN, qty=1, now=fixed_now)
    with pytest.raises(NotFoundError):
        svc.record_movement(variant_id=1, warehouse_id=99, movement_type=MovementType.IN, qty=1, now=fixed_now)


def test_bad_unit_cost_leaves_stock_untouched(fixed_now):
    svc, repo = _stocked(fixed_now)

    with pytest.raises(ValidationError):
        svc.record_movement(
            variant_id=1, warehouse_id=10, movement_type=MovementType.OUT, qty=5, unit_cost="x", now=fixed_now
        )

    assert repo.get_balance(1, 10).on_hand == 20
    assert len(repo.movements) == 1


def test_transfer_moves_stock_between_warehouses(fixed_now):
    svc, repo = _stocked(fixed_now)

    svc.record_movement(
        variant_id=1, warehouse_id=10, movement_type=MovementType.TRANSFER, qty=8, to_warehouse_id=20, now=fixed_now
    )

    assert repo.get_balance(1, 10).on_hand == 12
    assert repo.get_balance(1, 20).on_hand == 8
    assert repo.movements[-1].to_warehouse_id == 20


def test_failed_transfer_leaves_no_partial_writes(fixed_now):
    svc, repo = _stocked(fixed_now)
    repo.fail_commit = True

    with pytest.raises(RuntimeError):
        svc.record_movement(
            variant_id=1, warehouse_id=10, movement_type=MovementType.TRANSFER, qty=5, to_warehouse_id=20, now=fixed_now
        )

    assert repo.get_balance(1, 10).on_hand == 20
    assert repo.get_balance(1, 20) is None
    assert len(repo.movements) == 1


def test_transfer_validation(fixed_now):
    svc, _ = _stocked(fixed_now)
    base = dict(variant_id=1, warehouse_id=10, movement_type=MovementType.TRANSFER, now=fixed_now)

    with pytest.raises(ValidationError, match="Destination"):
        svc.record_movement(qty=1, **base)
    with pytest.raises(ValidationError, match="differ"):
        svc.record_movement(qty=1, to_warehouse_id=10, **base)
    with pytest.raises(NotFoundError):
        svc.record_movement(qty=1, to_warehouse_id=30, **base)
    with pytest.raises(ValidationError, match="Insufficient"):
        svc.record_movement(qty=21, to_warehouse_id=20, allow_negative=True, **base)


def test_allocate_and_release(fixed_now):
    svc, _ = _stocked(fixed_now, qty=10)

    balance = svc.allocate(variant_id=1, warehouse_id=10, qty=7)
    assert (balance.allocated, balance.available) == (7, 3)
    with pytest.raises(ValidationError):
        svc.allocate(variant_id=1, warehouse_id=10, qty=4)

    balance = svc.release(variant_id=1, warehouse_id=10, qty=100)
    assert (balance.allocated, balance.available) == (0, 10)


def test_low_stock_limit_fallbacks():
    warehouse = Warehouse(10, "Main", "MAIN")
    balance = InventoryBalance(1, 10)

    assert low_stock_limit(StockLevel(ProductVariant(1, "A", "A", min_stock_level=3), warehouse, balance)) == 3
    assert low_stock_limit(StockLevel(ProductVariant(1, "A", "A", reorder_point=7), warehouse, balance)) == 7
    assert low_stock_limit(StockLevel(ProductVariant(1, "A", "A"), warehouse, balance), 4) == 4
    assert low_stock_limit(StockLevel(ProductVariant(1, "A", "A"), warehouse, balance)) == 10


def test_alerts_and_stock_value(fixed_now):
    svc, repo = _stocked(fixed_now, qty=4)
    svc.record_movement(variant_id=2, warehouse_id=10, movement_type=MovementType.ADJUST, qty=0, now=fixed_now)

    alerts = svc.alerts()

    assert [a["severity"] for a in alerts] == ["critical", "warning"]
    assert alerts[0]["sku"] == "MUG-BLU"
    assert alerts[1]["suggested_qty"] == 50
    assert [lv.variant.sku for lv in svc.out_of_stock()] == ["MUG-BLU"]
    assert len(svc.low_stock()) == 2
    assert svc.total_stock_value() == Decimal("18.00")


def test_movement_history(fixed_now):
    svc, _ = _stocked(fixed_now)
    svc.record_movement(variant_id=1, warehouse_id=10, movement_type=MovementType.OUT, qty=2, now=fixed_now)

    history = svc.movement_history(variant_id=1, limit=1)

    assert len(history) == 1
    assert history[0].movement_type == MovementType.OUT


def test_warehouses_hide_inactive_by_default():
    repo = InMemoryInventory()
    repo.warehouses[30] = Warehouse(30, "Closed", "OLD", is_active=False)
    svc = InventoryService(repo)

    assert [w.code for w in svc.warehouses()] == ["MAIN", "OVF"]
    assert [w.code for w in svc.warehouses(active_only=False)] == ["OLD", "MAIN", "OVF"]
