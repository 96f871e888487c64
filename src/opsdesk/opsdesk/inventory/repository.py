from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import InventoryBalance, ProductVariant, StockLevel, StockMovement, Warehouse


class InventoryRepository(Protocol):
    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        raise NotImplementedError

    def get_warehouse(self, warehouse_id: int) -> Optional[Warehouse]:
        raise NotImplementedError

    def list_warehouses(self) -> Sequence[Warehouse]:
        raise NotImplementedError

    def get_balance(self, variant_id: int, warehouse_id: int) -> Optional[InventoryBalance]:
        raise NotImplementedError

    def save_balance(self, balance: InventoryBalance) -> None:
        """Insert or update the (variant, warehouse) balance row."""

        raise NotImplementedError

    def list_stock_levels(self, *, warehouse_id: Optional[int] = None) -> Sequence[StockLevel]:
        raise NotImplementedError

    def commit_movement(self, balances: Sequence[InventoryBalance], movement: StockMovement) -> int:
        """Save ``balances`` and append ``movement`` in one transaction; ``movement.movement_id`` is ignored."""

        raise NotImplementedError

    def list_movements(
        self,
        *,
        variant_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        limit: int = 50,
    ) -> Sequence[StockMovement]:
        raise NotImplementedError
