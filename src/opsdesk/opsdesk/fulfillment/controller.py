from __future__ import annotations

from flask import Flask, Response, jsonify, request

from ..common.datetime_utils import parse_optional_date
from ..common.validators import parse_int
from ..container import Container
from ..core.enums import Module, PackingStatus
from ..core.exceptions import ValidationError
from ..web.auth import current_user, handle_errors, module_required
from .model import HandoverItem, PackingFilters, PackingOrder, PackingSort


def _status(value) -> PackingStatus:
    try:
        return PackingStatus(value)
    except ValueError:
        raise ValidationError("Invalid packing status")


def _packing_json(o: PackingOrder) -> dict:
    return {
        "packing_id": o.packing_id,
        "order_number": o.order_number,
        "product_name": o.product_name,
        "variant": o.variant,
        "color": o.color,
        "main_photo": o.main_photo,
        "main_photo_status": o.main_photo_status.value,
        "polaroids": list(o.polaroids),
        "polaroid_count": o.polaroid_count,
        "back_engraving_type": o.back_engraving_type,
        "back_engraving_value": o.back_engraving_value,
        "status": o.status.value,
        "packer": o.packer,
        "packed_at": o.packed_at.isoformat() if o.packed_at else None,
        "customer": o.customer,
        "sku": o.sku,
        "quantity": o.quantity,
        "notes": o.notes,
    }


def _handover_json(i: HandoverItem) -> dict:
    return {
        "item_id": i.item_id,
        "awb_number": i.awb_number,
        "order_number": i.order_number,
        "courier_name": i.courier_name,
        "status": i.status.value,
        "scanned_by": i.scanned_by,
        "scanned_at": i.scanned_at.isoformat(),
        "handed_over_at": i.handed_over_at.isoformat() if i.handed_over_at else None,
        "notes": i.notes,
    }


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        body.encode("utf-8-sig"),
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _filters_from_args() -> PackingFilters:
    args = request.args

    def opt(name):
        value = args.get(name)
        return None if value in (None, "", "all") else value

    return PackingFilters(
        search=opt("search"),
        status=_status(opt("status")) if opt("status") else None,
        packer=opt("packer"),
        sku=opt("sku"),
        variant=opt("variant"),
    )


def _sort_from_args():
    field = request.args.get("sort")
    if not field:
        return None
    return PackingSort(field=field, descending=request.args.get("direction", "asc").lower() == "desc")


def register(app: Flask, container: Container) -> None:
    @app.route("/fulfillment/packing/import", methods=["POST"], endpoint="packing_import")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_import():
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise ValidationError("File is required")
        result = container.packing_service.import_sheet(
            upload.read(),
            upload.filename,
            replace=request.form.get("mode", "append") == "replace",
        )
        return jsonify({"success": True, **result}), 201

    @app.route("/fulfillment/packing", endpoint="packing_list")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_list():
        filters = _filters_from_args()
        page = container.packing_service.list(
            filters,
            _sort_from_args(),
            page=parse_int(request.args.get("page"), "page", 1),
            page_size=parse_int(request.args.get("page_size"), "page size", 50),
        )
        return jsonify(
            {
                "orders": [_packing_json(o) for o in page.items],
                "total": page.total,
                "total_pages": page.total_pages,
                "current_page": page.current_page,
                "page_size": page.page_size,
                "stats": container.packing_service.stats(container.packing_service.filtered(filters)),
            }
        )

    @app.route("/fulfillment/packing/values/<field>", endpoint="packing_unique_values")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_unique_values(field: str):
        return jsonify({"values": container.packing_service.unique_values(field)})

    @app.route("/fulfillment/packing/<int:packing_id>/status", methods=["POST"], endpoint="packing_update_status")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_update_status(packing_id: int):
        data = request.get_json(silent=True) or {}
        container.packing_service.update_status(
            packing_id, _status(data.get("status")), packer=data.get("packer") or current_user().full_name
        )
        return jsonify({"success": True})

    @app.route("/fulfillment/packing/bulk-status", methods=["POST"], endpoint="packing_bulk_status")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_bulk_status():
        data = request.get_json(silent=True) or {}
        affected = container.packing_service.bulk_update_status(
            [parse_int(i, "id") for i in data.get("ids") or []],
            _status(data.get("status")),
            packer=data.get("packer") or current_user().full_name,
        )
        return jsonify({"success": True, "affected": affected})

    @app.route("/fulfillment/packing/<int:packing_id>", methods=["DELETE"], endpoint="packing_delete")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_delete(packing_id: int):
        container.packing_service.delete(packing_id)
        return jsonify({"success": True})

    @app.route("/fulfillment/packing/export.csv", endpoint="packing_export")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def packing_export():
        svc = container.packing_service
        orders = svc.filtered(_filters_from_args(), _sort_from_args())
        return _csv_response(svc.export_csv(orders), svc.export_filename())

    @app.route("/fulfillment/handover/scan", methods=["POST"], endpoint="handover_scan")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def handover_scan():
        data = request.get_json(silent=True) or {}
        item_id = container.handover_service.scan(
            awb_number=data.get("awb_number", ""),
            courier_name=data.get("courier_name", ""),
            order_number=data.get("order_number"),
            notes=data.get("notes"),
            scanned_by=current_user().user_id,
        )
        return jsonify({"success": True, "item_id": item_id}), 201

    @app.route("/fulfillment/handover", endpoint="handover_list")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def handover_list():
        day = parse_optional_date(request.args.get("date"), "Date")
        courier = request.args.get("courier")
        items = container.handover_service.list(day=day, courier_name=courier)
        summary = container.handover_service.summary(day, courier)
        return jsonify(
            {
                "items": [_handover_json(i) for i in items],
                "summary": {
                    "total": summary.total,
                    "by_status": summary.by_status,
                    "by_courier": summary.by_courier,
                },
            }
        )

    @app.route("/fulfillment/handover/handed-over", methods=["POST"], endpoint="handover_mark")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def handover_mark():
        data = request.get_json(silent=True) or {}
        affected = container.handover_service.mark_handed_over([parse_int(i, "id") for i in data.get("ids") or []])
        return jsonify({"success": True, "affected": affected})

    @app.route("/fulfillment/handover/<int:item_id>/cancel", methods=["POST"], endpoint="handover_cancel")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def handover_cancel(item_id: int):
        container.handover_service.cancel(item_id)
        return jsonify({"success": True})

    @app.route("/fulfillment/handover/<int:item_id>", methods=["DELETE"], endpoint="handover_delete")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def handover_delete(item_id: int):
        container.handover_service.delete(item_id)
        return jsonify({"success": True})

    @app.route("/fulfillment/handover/export.csv", endpoint="handover_export")
    @module_required(Module.FULFILLMENT)
    @handle_errors
    def handover_export():
        items = container.handover_service.list(
            day=parse_optional_date(request.args.get("date"), "Date"),
            courier_name=request.args.get("courier"),
        )
        return _csv_response(container.handover_service.export_csv(items), "courier_handover.csv")
