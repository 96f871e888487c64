from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_optional_date
from ..common.validators import parse_int
from ..container import Container
from ..core.enums import CreatorStatus, Module
from ..core.exceptions import ValidationError
from ..web.auth import handle_errors, module_required
from .model import Creator, CreatorPayment


def _creator_json(c: Creator) -> dict:
    return {
        "creator_id": c.creator_id,
        "name": c.name,
        "role": c.role,
        "status": c.status.value,
        "email": c.email,
        "phone": c.phone,
        "base_rate": str(c.base_rate),
        "currency": c.currency,
        "rate_unit": c.rate_unit,
        "payment_cycle": c.payment_cycle,
        "rating": c.rating,
        "notes": c.notes,
    }


def _payment_json(p: CreatorPayment) -> dict:
    return {
        "payment_id": p.payment_id,
        "creator_id": p.creator_id,
        "description": p.description,
        "amount": str(p.amount),
        "amount_paid": str(p.amount_paid),
        "outstanding": str(p.outstanding),
        "currency": p.currency,
        "status": p.status.value,
        "due_date": p.due_date.isoformat(),
        "paid_date": p.paid_date.isoformat() if p.paid_date else None,
    }


def _status(value):
    if value in (None, "", "all"):
        return None
    try:
        return CreatorStatus(value)
    except ValueError:
        raise ValidationError("Invalid creator status")


def register(app: Flask, container: Container) -> None:
    marketing = container.marketing_service

    @app.route("/marketing/creators", endpoint="creators_list")
    @module_required(Module.MARKETING)
    @handle_errors
    def creators_list():
        creators = marketing.list_creators(_status(request.args.get("status")))
        return jsonify({"creators": [_creator_json(c) for c in creators]})

    @app.route("/marketing/creators", methods=["POST"], endpoint="creators_create")
    @module_required(Module.MARKETING)
    @handle_errors
    def creators_create():
        data = request.get_json(silent=True) or {}
        creator_id = marketing.create_creator(
            Creator(
                creator_id=0,
                name=data.get("name", ""),
                role=data.get("role", ""),
                status=_status(data.get("status")) or CreatorStatus.ONBOARDING,
                email=data.get("email"),
                phone=data.get("phone"),
                base_rate=data.get("base_rate", 0),
                currency=data.get("currency", "INR"),
                rate_unit=data.get("rate_unit", "per project"),
                payment_cycle=data.get("payment_cycle", "Per Project"),
                rating=data.get("rating"),
                notes=data.get("notes"),
            )
        )
        return jsonify({"success": True, "creator_id": creator_id}), 201

    @app.route("/marketing/creators/<int:creator_id>", methods=["PUT"], endpoint="creators_update")
    @module_required(Module.MARKETING)
    @handle_errors
    def creators_update(creator_id: int):
        creator = marketing.update_creator(creator_id, request.get_json(silent=True) or {})
        return jsonify({"success": True, "creator": _creator_json(creator)})

    @app.route("/marketing/payments", endpoint="creator_payments_list")
    @module_required(Module.MARKETING)
    @handle_errors
    def creator_payments_list():
        marketing.refresh_overdue()
        payments = marketing.payments(parse_int(request.args.get("creator_id"), "creator id"))
        summary = {
            currency: {k: str(v) if not isinstance(v, int) else v for k, v in row.items()}
            for currency, row in marketing.outstanding_summary().items()
        }
        return jsonify({"payments": [_payment_json(p) for p in payments], "summary": summary})

    @app.route("/marketing/creators/<int:creator_id>/payments", methods=["POST"], endpoint="creator_payment_create")
    @module_required(Module.MARKETING)
    @handle_errors
    def creator_payment_create(creator_id: int):
        data = request.get_json(silent=True) or {}
        due_date = parse_optional_date(data.get("due_date"), "Due date")
        if due_date is None:
            raise ValidationError("Due date is required")
        payment_id = marketing.record_payment(
            creator_id,
            description=data.get("description", ""),
            amount=data.get("amount"),
            due_date=due_date,
            currency=data.get("currency"),
        )
        return jsonify({"success": True, "payment_id": payment_id}), 201

    @app.route("/marketing/payments/<int:payment_id>/pay", methods=["POST"], endpoint="creator_payment_pay")
    @module_required(Module.MARKETING)
    @handle_errors
    def creator_payment_pay(payment_id: int):
        data = request.get_json(silent=True) or {}
        payment = marketing.pay(payment_id, data.get("amount"))
        return jsonify({"success": True, "payment": _payment_json(payment)})
