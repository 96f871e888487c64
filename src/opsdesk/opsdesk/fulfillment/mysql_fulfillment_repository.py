from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from ..core.enums import HandoverStatus, PackingStatus, PhotoStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone, in_clause, json_column
from .model import HandoverItem, PackingOrder
from .repository import HandoverRepository, PackingRepository

_PACKING_COLUMNS = (
    "order_number, product_name, variant, color, main_photo, polaroids, back_engraving_type, "
    "back_engraving_value, status, packer, packed_at, customer, sku, quantity, notes, "
    "main_photo_status, polaroid_count"
)


def _to_packing(r: dict) -> PackingOrder:
    return PackingOrder(
        packing_id=int(r["packing_id"]),
        order_number=r.get("order_number"),
        product_name=r.get("product_name"),
        variant=r.get("variant"),
        color=r.get("color"),
        main_photo=r.get("main_photo"),
        polaroids=tuple(json_column(r.get("polaroids"), [])),
        back_engraving_type=r.get("back_engraving_type"),
        back_engraving_value=r.get("back_engraving_value"),
        status=PackingStatus(r["status"]),
        packer=r.get("packer"),
        packed_at=r.get("packed_at"),
        customer=r.get("customer"),
        sku=r.get("sku"),
        quantity=int(r.get("quantity") or 1),
        notes=r.get("notes"),
        main_photo_status=PhotoStatus(r.get("main_photo_status") or "missing"),
        polaroid_count=int(r.get("polaroid_count") or 0),
        imported_at=r.get("imported_at"),
    )


def _to_handover(r: dict) -> HandoverItem:
    return HandoverItem(
        item_id=int(r["item_id"]),
        awb_number=r["awb_number"],
        order_number=r.get("order_number"),
        courier_name=r["courier_name"],
        status=HandoverStatus(r["status"]),
        scanned_by=r.get("scanned_by"),
        scanned_at=r["scanned_at"],
        handed_over_at=r.get("handed_over_at"),
        notes=r.get("notes"),
    )


class MySQLPackingRepository(PackingRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[PackingOrder]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT packing_id, {_PACKING_COLUMNS}, imported_at FROM packing_orders ORDER BY packing_id")
            return [_to_packing(r) for r in fetchall(cur)]

    def add_many(self, orders: Sequence[PackingOrder], *, imported_at: datetime) -> int:
        if not orders:
            return 0
        rows = [
            (
                o.order_number,
                o.product_name,
                o.variant,
                o.color,
                o.main_photo,
                json.dumps(list(o.polaroids)),
                o.back_engraving_type,
                o.back_engraving_value,
                o.status.value,
                o.packer,
                o.packed_at,
                o.customer,
                o.sku,
                o.quantity,
                o.notes,
                o.main_photo_status.value,
                o.polaroid_count,
                imported_at,
            )
            for o in orders
        ]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                f"INSERT INTO packing_orders({_PACKING_COLUMNS}, imported_at) "
                "VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)",
                rows,
            )
            return len(rows)

    def clear(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM packing_orders")
            return int(cur.rowcount)

    def update_status(
        self,
        packing_ids: Sequence[int],
        status: PackingStatus,
        *,
        packer: Optional[str],
        packed_at: Optional[datetime],
    ) -> int:
        if not packing_ids:
            return 0
        ids_sql, ids = in_clause("packing_id", [int(i) for i in packing_ids])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE packing_orders
                SET status=%s,
                    packed_at=COALESCE(%s, packed_at),
                    packer=COALESCE(%s, packer)
                WHERE {ids_sql}
                """,
                (status.value, packed_at, packer, *ids),
            )
            return int(cur.rowcount)

    def delete(self, packing_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM packing_orders WHERE packing_id=%s", (int(packing_id),))
            return cur.rowcount > 0


class MySQLHandoverRepository(HandoverRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    _SELECT = (
        "SELECT item_id, awb_number, order_number, courier_name, status, scanned_by, scanned_at, "
        "handed_over_at, notes FROM courier_handover_items"
    )

    def get_by_id(self, item_id: int) -> Optional[HandoverItem]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{self._SELECT} WHERE item_id=%s", (int(item_id),))
            r = fetchone(cur)
            return _to_handover(r) if r else None

    def find_active(
        self, *, courier_name: str, awb_number: str, order_number: Optional[str]
    ) -> Optional[HandoverItem]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {self._SELECT}
                WHERE courier_name=%s AND status<>%s
                  AND (awb_number=%s OR (%s IS NOT NULL AND order_number=%s))
                LIMIT 1
                """,
                (courier_name, HandoverStatus.CANCELLED.value, awb_number, order_number, order_number),
            )
            r = fetchone(cur)
            return _to_handover(r) if r else None

    def create(self, item: HandoverItem) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO courier_handover_items(awb_number, order_number, courier_name, status, scanned_by, scanned_at, notes)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    item.awb_number,
                    item.order_number,
                    item.courier_name,
                    item.status.value,
                    item.scanned_by,
                    item.scanned_at,
                    item.notes,
                ),
            )
            return int(cur.lastrowid)

    def set_status(
        self, item_ids: Sequence[int], status: HandoverStatus, *, handed_over_at: Optional[datetime] = None
    ) -> int:
        if not item_ids:
            return 0
        ids_sql, ids = in_clause("item_id", [int(i) for i in item_ids])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE courier_handover_items SET status=%s, handed_over_at=COALESCE(%s, handed_over_at) WHERE {ids_sql}",
                (status.value, handed_over_at, *ids),
            )
            return int(cur.rowcount)

    def delete(self, item_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM courier_handover_items WHERE item_id=%s", (int(item_id),))
            return cur.rowcount > 0

    def list(self, *, day: Optional[date] = None, courier_name: Optional[str] = None) -> Sequence[HandoverItem]:
        clauses: list[str] = []
        params: list[object] = []
        if day is not None:
            clauses.append("scanned_at >= %s AND scanned_at < %s")
            start = datetime.combine(day, datetime.min.time())
            params.extend([start, start + timedelta(days=1)])
        if courier_name:
            clauses.append("courier_name=%s")
            params.append(courier_name)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{self._SELECT} {build_where(clauses)} ORDER BY scanned_at DESC", tuple(params))
            return [_to_handover(r) for r in fetchall(cur)]
