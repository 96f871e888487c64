from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import MovementType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone, to_decimal
from .model import InventoryBalance, ProductVariant, StockLevel, StockMovement, Warehouse
from .repository import InventoryRepository


def _to_variant(r: dict) -> ProductVariant:
    return ProductVariant(
        variant_id=int(r["variant_id"]),
        sku=r["sku"],
        product_name=r["product_name"],
        category=r.get("category"),
        cost=to_decimal(r.get("cost")),
        price=to_decimal(r.get("price")),
        min_stock_level=int(r.get("min_stock_level") or 0),
        reorder_point=int(r.get("reorder_point") or 0),
        reorder_quantity=int(r.get("reorder_quantity") or 0),
    )


def _to_warehouse(r: dict) -> Warehouse:
    return Warehouse(
        warehouse_id=int(r["warehouse_id"]),
        name=r["name"],
        code=r["code"],
        city=r.get("city"),
        country=r.get("country"),
        is_active=bool(r.get("is_active", True)),
    )


def _to_balance(r: dict) -> InventoryBalance:
    return InventoryBalance(
        variant_id=int(r["variant_id"]),
        warehouse_id=int(r["warehouse_id"]),
        on_hand=int(r.get("on_hand_qty") or 0),
        allocated=int(r.get("allocated_qty") or 0),
        available=int(r.get("available_qty") or 0),
        last_movement_at=r.get("last_movement_at"),
    )


_UPSERT_BALANCE = """
    INSERT INTO inventory_balances(variant_id, warehouse_id, on_hand_qty, allocated_qty, available_qty, last_movement_at)
    VALUES(%s,%s,%s,%s,%s,%s)
    ON DUPLICATE KEY UPDATE
        on_hand_qty=VALUES(on_hand_qty),
        allocated_qty=VALUES(allocated_qty),
        available_qty=VALUES(available_qty),
        last_movement_at=VALUES(last_movement_at)
"""


def _balance_params(b: InventoryBalance) -> tuple:
    return (b.variant_id, b.warehouse_id, b.on_hand, b.allocated, b.available, b.last_movement_at)


class MySQLInventoryRepository(InventoryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_variant(self, variant_id: int) -> Optional[ProductVariant]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT variant_id, sku, product_name, category, cost, price,
                       min_stock_level, reorder_point, reorder_quantity
                FROM product_variants
                WHERE variant_id=%s
                """,
                (int(variant_id),),
            )
            r = fetchone(cur)
            return _to_variant(r) if r else None

    def get_warehouse(self, warehouse_id: int) -> Optional[Warehouse]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT warehouse_id, name, code, city, country, is_active FROM warehouses WHERE warehouse_id=%s",
                (int(warehouse_id),),
            )
            r = fetchone(cur)
            return _to_warehouse(r) if r else None

    def list_warehouses(self) -> Sequence[Warehouse]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT warehouse_id, name, code, city, country, is_active FROM warehouses ORDER BY name")
            return [_to_warehouse(r) for r in fetchall(cur)]

    def get_balance(self, variant_id: int, warehouse_id: int) -> Optional[InventoryBalance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT variant_id, warehouse_id, on_hand_qty, allocated_qty, available_qty, last_movement_at
                FROM inventory_balances
                WHERE variant_id=%s AND warehouse_id=%s
                """,
                (int(variant_id), int(warehouse_id)),
            )
            r = fetchone(cur)
            return _to_balance(r) if r else None

    def save_balance(self, balance: InventoryBalance) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_UPSERT_BALANCE, _balance_params(balance))

    def list_stock_levels(self, *, warehouse_id: Optional[int] = None) -> Sequence[StockLevel]:
        clauses: list[str] = []
        params: list[object] = []
        if warehouse_id is not None:
            clauses.append("b.warehouse_id=%s")
            params.append(int(warehouse_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT
                    b.variant_id, b.warehouse_id, b.on_hand_qty, b.allocated_qty, b.available_qty, b.last_movement_at,
                    v.sku, v.product_name, v.category, v.cost, v.price,
                    v.min_stock_level, v.reorder_point, v.reorder_quantity,
                    w.name, w.code, w.city, w.country, w.is_active
                FROM inventory_balances b
                JOIN product_variants v ON v.variant_id = b.variant_id
                JOIN warehouses w ON w.warehouse_id = b.warehouse_id
                {build_where(clauses)}
                ORDER BY v.sku, w.code
                """,
                tuple(params),
            )
            return [
                StockLevel(variant=_to_variant(r), warehouse=_to_warehouse(r), balance=_to_balance(r))
                for r in fetchall(cur)
            ]

    def commit_movement(self, balances: Sequence[InventoryBalance], movement: StockMovement) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            for balance in balances:
                cur.execute(_UPSERT_BALANCE, _balance_params(balance))
            cur.execute(
                """
                INSERT INTO stock_movements(
                    variant_id, warehouse_id, movement_type, qty, unit_cost, reference_type,
                    reference_id, to_warehouse_id, user_id, notes, occurred_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    movement.variant_id,
                    movement.warehouse_id,
                    movement.movement_type.value,
                    movement.qty,
                    movement.unit_cost,
                    movement.reference_type,
                    movement.reference_id,
                    movement.to_warehouse_id,
                    movement.user_id,
                    movement.notes,
                    movement.occurred_at,
                ),
            )
            return int(cur.lastrowid)

    def list_movements(
        self,
        *,
        variant_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        limit: int = 50,
    ) -> Sequence[StockMovement]:
        clauses: list[str] = []
        params: list[object] = []
        if variant_id is not None:
            clauses.append("variant_id=%s")
            params.append(int(variant_id))
        if warehouse_id is not None:
            clauses.append("(warehouse_id=%s OR to_warehouse_id=%s)")
            params.extend([int(warehouse_id), int(warehouse_id)])
        params.append(int(limit))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT movement_id, variant_id, warehouse_id, movement_type, qty, unit_cost, reference_type,
                       reference_id, to_warehouse_id, user_id, notes, occurred_at
                FROM stock_movements
                {build_where(clauses)}
                ORDER BY occurred_at DESC, movement_id DESC
                LIMIT %s
                """,
                tuple(params),
            )
            return [
                StockMovement(
                    movement_id=int(r["movement_id"]),
                    variant_id=int(r["variant_id"]),
                    warehouse_id=int(r["warehouse_id"]),
                    movement_type=MovementType(r["movement_type"]),
                    qty=int(r["qty"]),
                    unit_cost=to_decimal(r["unit_cost"]) if r.get("unit_cost") is not None else None,
                    reference_type=r.get("reference_type"),
                    reference_id=r.get("reference_id"),
                    to_warehouse_id=r.get("to_warehouse_id"),
                    user_id=r.get("user_id"),
                    notes=r.get("notes"),
                    occurred_at=r["occurred_at"],
                )
                for r in fetchall(cur)
            ]
