from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.validators import parse_int
from ..container import Container
from ..core.enums import Module, MovementType
from ..core.exceptions import ValidationError
from ..web.auth import current_user, handle_errors, module_required
from .model import StockLevel, StockMovement


def _level_json(level: StockLevel) -> dict:
    return {
        "variant_id": level.variant.variant_id,
        "sku": level.variant.sku,
        "product_name": level.variant.product_name,
        "category": level.variant.category,
        "warehouse_id": level.warehouse.warehouse_id,
        "warehouse": level.warehouse.code,
        "on_hand": level.balance.on_hand,
        "allocated": level.balance.allocated,
        "available": level.balance.available,
        "cost": str(level.variant.cost),
        "last_movement_at": level.balance.last_movement_at.isoformat() if level.balance.last_movement_at else None,
    }


def _movement_json(m: StockMovement) -> dict:
    return {
        "movement_id": m.movement_id,
        "variant_id": m.variant_id,
        "warehouse_id": m.warehouse_id,
        "to_warehouse_id": m.to_warehouse_id,
        "movement_type": m.movement_type.value,
        "qty": m.qty,
        "unit_cost": str(m.unit_cost) if m.unit_cost is not None else None,
        "reference_type": m.reference_type,
        "reference_id": m.reference_id,
        "notes": m.notes,
        "user_id": m.user_id,
        "occurred_at": m.occurred_at.isoformat(),
    }


def _int_arg(name: str):
    return parse_int(request.args.get(name), name.replace("_", " "))


def register(app: Flask, container: Container) -> None:
    @app.route("/inventory/warehouses", endpoint="inventory_warehouses")
    @module_required(Module.INVENTORY)
    def inventory_warehouses():
        active_only = request.args.get("all") != "1"
        return jsonify(
            {
                "warehouses": [
                    {"warehouse_id": w.warehouse_id, "code": w.code, "name": w.name, "city": w.city, "is_active": w.is_active}
                    for w in container.inventory_service.warehouses(active_only=active_only)
                ]
            }
        )

    @app.route("/inventory/stock", endpoint="inventory_stock")
    @module_required(Module.INVENTORY)
    @handle_errors
    def inventory_stock():
        levels = container.inventory_service.stock_levels(warehouse_id=_int_arg("warehouse_id"))
        return jsonify(
            {
                "items": [_level_json(lv) for lv in levels],
                "total_value": str(container.inventory_service.total_stock_value()),
            }
        )

    @app.route("/inventory/low-stock", endpoint="inventory_low_stock")
    @module_required(Module.INVENTORY)
    @handle_errors
    def inventory_low_stock():
        levels = container.inventory_service.low_stock(_int_arg("threshold"))
        return jsonify({"items": [_level_json(lv) for lv in levels]})

    @app.route("/inventory/out-of-stock", endpoint="inventory_out_of_stock")
    @module_required(Module.INVENTORY)
    def inventory_out_of_stock():
        return jsonify({"items": [_level_json(lv) for lv in container.inventory_service.out_of_stock()]})

    @app.route("/inventory/alerts", endpoint="inventory_alerts")
    @module_required(Module.INVENTORY)
    @handle_errors
    def inventory_alerts():
        return jsonify({"alerts": container.inventory_service.alerts(_int_arg("threshold"))})

    @app.route("/inventory/movements", endpoint="inventory_movements")
    @module_required(Module.INVENTORY)
    @handle_errors
    def inventory_movements():
        movements = container.inventory_service.movement_history(
            variant_id=_int_arg("variant_id"),
            warehouse_id=_int_arg("warehouse_id"),
            limit=_int_arg("limit") or 50,
        )
        return jsonify({"movements": [_movement_json(m) for m in movements]})

    @app.route("/inventory/movements", methods=["POST"], endpoint="inventory_record_movement")
    @module_required(Module.INVENTORY)
    @handle_errors
    def inventory_record_movement():
        data = request.get_json(silent=True) or {}
        try:
            movement_type = MovementType(str(data.get("movement_type", "")).upper())
        except ValueError:
            raise ValidationError("Invalid movement type")
        movement_id = container.inventory_service.record_movement(
            variant_id=parse_int(data.get("variant_id"), "variant id", 0),
            warehouse_id=parse_int(data.get("warehouse_id"), "warehouse id", 0),
            movement_type=movement_type,
            qty=parse_int(data.get("qty"), "qty", 0),
            to_warehouse_id=parse_int(data.get("to_warehouse_id"), "to warehouse id"),
            unit_cost=data.get("unit_cost"),
            reference_type=data.get("reference_type"),
            reference_id=data.get("reference_id"),
            notes=data.get("notes"),
            user_id=current_user().user_id,
            allow_negative=bool(data.get("allow_negative")),
        )
        return jsonify({"success": True, "movement_id": movement_id}), 201

    @app.route("/inventory/allocations", methods=["POST"], endpoint="inventory_allocate")
    @module_required(Module.INVENTORY)
    @handle_errors
    def inventory_allocate():
        data = request.get_json(silent=True) or {}
        action = container.inventory_service.release if data.get("release") else container.inventory_service.allocate
        balance = action(
            variant_id=parse_int(data.get("variant_id"), "variant id", 0),
            warehouse_id=parse_int(data.get("warehouse_id"), "warehouse id", 0),
            qty=parse_int(data.get("qty"), "qty", 0),
        )
        return jsonify(
            {
                "success": True,
                "on_hand": balance.on_hand,
                "allocated": balance.allocated,
                "available": balance.available,
            }
        )
