from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import MovementType


@dataclass(frozen=True)
class Warehouse:
    warehouse_id: int
    name: str
    code: str
    city: Optional[str] = None
    country: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class ProductVariant:
    variant_id: int
    sku: str
    product_name: str
    category: Optional[str] = None
    cost: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    min_stock_level: int = 0
    reorder_point: int = 0
    reorder_quantity: int = 0


@dataclass(frozen=True)
class InventoryBalance:
    variant_id: int
    warehouse_id: int
    on_hand: int = 0
    allocated: int = 0
    available: int = 0
    last_movement_at: Optional[datetime] = None


@dataclass(frozen=True)
class StockLevel:
    """Read-model: balance joined with its variant and warehouse."""

    variant: ProductVariant
    warehouse: Warehouse
    balance: InventoryBalance


@dataclass(frozen=True)
class StockMovement:
    movement_id: int
    variant_id: int
    warehouse_id: int
    movement_type: MovementType
    qty: int
    occurred_at: datetime
    unit_cost: Optional[Decimal] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    to_warehouse_id: Optional[int] = None
    user_id: Optional[int] = None
    notes: Optional[str] = None
