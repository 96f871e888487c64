from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import require_positive
from ..core.constants import DEFAULT_LOW_STOCK_THRESHOLD, DEFAULT_PAGE_SIZE
from ..core.enums import MovementType
from ..core.exceptions import NotFoundError, ValidationError
from .model import InventoryBalance, StockLevel, StockMovement, Warehouse
from .repository import InventoryRepository

logger = logging.getLogger(__name__)


def with_available(balance: InventoryBalance) -> InventoryBalance:
    return replace(balance, available=max(0, balance.on_hand - balance.allocated))


def apply_movement(
    balance: InventoryBalance,
    movement_type: MovementType,
    qty: int,
    *,
    allow_negative: bool = False,
) -> InventoryBalance:
    """Return the balance after one movement on the source warehouse.

    TRANSFER is applied as an OUT here; the destination side is an IN.
    """

    if movement_type == MovementType.ADJUST:
        require_positive(qty, "Adjusted quantity", allow_zero=True)
        return with_available(replace(balance, on_hand=qty))

    require_positive(qty, "Quantity")

    if movement_type == MovementType.IN:
        return with_available(replace(balance, on_hand=balance.on_hand + qty))

    if movement_type in (MovementType.OUT, MovementType.TRANSFER):
        if qty > balance.available and not allow_negative:
            raise ValidationError(f"Insufficient stock: requested {qty}, available {balance.available}")
        return with_available(replace(balance, on_hand=max(0, balance.on_hand - qty)))

    raise ValidationError(f"Unsupported movement type: {movement_type}")


def parse_unit_cost(value) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        cost = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Invalid unit cost")
    if cost < 0:
        raise ValidationError("Unit cost must be >= 0")
    return cost


def low_stock_limit(level: StockLevel, threshold: Optional[int] = None) -> int:
    v = level.variant
    return v.min_stock_level or v.reorder_point or threshold or DEFAULT_LOW_STOCK_THRESHOLD


class InventoryService:
    def __init__(self, inventory: InventoryRepository):
        self._inventory = inventory

    def _balance(self, variant_id: int, warehouse_id: int) -> InventoryBalance:
        return self._inventory.get_balance(variant_id, warehouse_id) or InventoryBalance(
            variant_id=variant_id, warehouse_id=warehouse_id
        )

    def record_movement(
        self,
        *,
        variant_id: int,
        warehouse_id: int,
        movement_type: MovementType,
        qty: int,
        to_warehouse_id: Optional[int] = None,
        unit_cost=None,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
        allow_negative: bool = False,
        now: Optional[datetime] = None,
    ) -> int:
        now = now or now_local()
        if not self._inventory.get_variant(variant_id):
            raise NotFoundError("Product variant not found")
        if not self._inventory.get_warehouse(warehouse_id):
            raise NotFoundError("Warehouse not found")

        qty = int(qty)
        cost = parse_unit_cost(unit_cost)
        source = self._balance(variant_id, warehouse_id)

        if movement_type == MovementType.TRANSFER:
            if not to_warehouse_id:
                raise ValidationError("Destination warehouse is required for transfers")
            if int(to_warehouse_id) == int(warehouse_id):
                raise ValidationError("Destination warehouse must differ from the source")
            if not self._inventory.get_warehouse(to_warehouse_id):
                raise NotFoundError("Destination warehouse not found")
            # transfers never go negative
            new_source = apply_movement(source, MovementType.TRANSFER, qty)
            dest = apply_movement(self._balance(variant_id, int(to_warehouse_id)), MovementType.IN, qty)
            changed = [replace(new_source, last_movement_at=now), replace(dest, last_movement_at=now)]
        else:
            new_source = apply_movement(source, movement_type, qty, allow_negative=allow_negative)
            changed = [replace(new_source, last_movement_at=now)]

        movement_id = self._inventory.commit_movement(
            changed,
            StockMovement(
                movement_id=0,
                variant_id=variant_id,
                warehouse_id=warehouse_id,
                movement_type=movement_type,
                qty=qty,
                unit_cost=cost,
                reference_type=reference_type,
                reference_id=reference_id,
                to_warehouse_id=int(to_warehouse_id) if to_warehouse_id else None,
                user_id=user_id,
                notes=notes,
                occurred_at=now,
            ),
        )
        logger.info(
            "Stock %s variant=%s warehouse=%s qty=%s on_hand=%s",
            movement_type.value,
            variant_id,
            warehouse_id,
            qty,
            new_source.on_hand,
        )
        return movement_id

    def allocate(self, *, variant_id: int, warehouse_id: int, qty: int) -> InventoryBalance:
        require_positive(qty, "Quantity")
        balance = self._balance(variant_id, warehouse_id)
        if qty > balance.available:
            raise ValidationError(f"Cannot allocate {qty}: only {balance.available} available")
        updated = with_available(replace(balance, allocated=balance.allocated + qty))
        self._inventory.save_balance(updated)
        return updated

    def release(self, *, variant_id: int, warehouse_id: int, qty: int) -> InventoryBalance:
        require_positive(qty, "Quantity")
        balance = self._balance(variant_id, warehouse_id)
        updated = with_available(replace(balance, allocated=max(0, balance.allocated - qty)))
        self._inventory.save_balance(updated)
        return updated

    def warehouses(self, *, active_only: bool = True) -> list[Warehouse]:
        return [w for w in self._inventory.list_warehouses() if w.is_active or not active_only]

    def stock_levels(self, *, warehouse_id: Optional[int] = None) -> Sequence[StockLevel]:
        return self._inventory.list_stock_levels(warehouse_id=warehouse_id)

    def low_stock(self, threshold: Optional[int] = None) -> list[StockLevel]:
        return [
            level
            for level in self._inventory.list_stock_levels()
            if level.balance.available <= low_stock_limit(level, threshold)
        ]

    def out_of_stock(self) -> list[StockLevel]:
        return [level for level in self._inventory.list_stock_levels() if level.balance.available <= 0]

    def alerts(self, threshold: Optional[int] = None) -> list[dict]:
        out = []
        for level in self._inventory.list_stock_levels():
            available = level.balance.available
            if available <= 0:
                severity = "critical"
            elif available <= low_stock_limit(level, threshold):
                severity = "warning"
            else:
                continue
            out.append(
                {
                    "severity": severity,
                    "variant_id": level.variant.variant_id,
                    "sku": level.variant.sku,
                    "product_name": level.variant.product_name,
                    "warehouse": level.warehouse.code,
                    "available": available,
                    "suggested_qty": level.variant.reorder_quantity,
                }
            )
        out.sort(key=lambda a: (a["severity"] != "critical", a["available"]))
        return out

    def total_stock_value(self) -> Decimal:
        return sum(
            (level.variant.cost * level.balance.on_hand for level in self._inventory.list_stock_levels()),
            Decimal("0"),
        )

    def movement_history(
        self,
        *,
        variant_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Sequence[StockMovement]:
        return self._inventory.list_movements(variant_id=variant_id, warehouse_id=warehouse_id, limit=limit)
