from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.pagination import paginate
from ..common.validators import parse_int
from ..container import Container
from ..core.enums import FeedbackStatus, Module, TicketPriority, TicketStatus
from ..core.exceptions import ValidationError
from ..web.auth import current_user, handle_errors, module_required
from .model import Feedback, SupportTicket, TicketFilters


def _enum(enum_cls, value, field_name: str, default=None):
    if value in (None, "", "all"):
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}")


def _ticket_json(t: SupportTicket) -> dict:
    return {
        "id": t.id,
        "ticket_id": t.ticket_id,
        "summary": t.summary,
        "description": t.description,
        "full_name": t.full_name,
        "email": t.email,
        "phone": t.phone,
        "order_id": t.order_id,
        "issue_type": t.issue_type,
        "status": t.status.value,
        "priority": t.priority.value,
        "is_urgent": t.is_urgent,
        "source": t.source,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }


def _feedback_json(fb: Feedback) -> dict:
    return {
        "feedback_id": fb.feedback_id,
        "feedback_type": fb.feedback_type,
        "subject": fb.subject,
        "message": fb.message,
        "customer_name": fb.customer_name,
        "customer_email": fb.customer_email,
        "priority": fb.priority.value,
        "status": fb.status.value,
        "order_id": fb.order_id,
        "rating": fb.rating,
        "resolution_notes": fb.resolution_notes,
        "resolution_time_hours": str(fb.resolution_time_hours) if fb.resolution_time_hours is not None else None,
        "created_at": fb.created_at.isoformat(),
        "resolved_at": fb.resolved_at.isoformat() if fb.resolved_at else None,
    }


def register(app: Flask, container: Container) -> None:
    def _stats_json() -> dict:
        stats = container.feedback_service.stats()
        stats["average_resolution_hours"] = str(stats["average_resolution_hours"])
        return stats

    @app.route("/support/tickets", endpoint="support_tickets")
    @module_required(Module.SUPPORT)
    @handle_errors
    def support_tickets():
        args = request.args
        tickets = container.support_service.search(
            TicketFilters(
                query=args.get("q"),
                status=_enum(TicketStatus, args.get("status"), "status"),
                priority=_enum(TicketPriority, args.get("priority"), "priority"),
                tab=_enum(TicketStatus, args.get("tab"), "tab"),
            )
        )
        page = paginate(tickets, parse_int(args.get("page"), "page", 1), parse_int(args.get("page_size"), "page size", 50))
        return jsonify(
            {
                "tickets": [_ticket_json(t) for t in page.items],
                "total": page.total,
                "total_pages": page.total_pages,
                "current_page": page.current_page,
                "kpis": container.support_service.kpis(),
            }
        )

    @app.route("/support/tickets", methods=["POST"], endpoint="support_ticket_create")
    @module_required(Module.SUPPORT)
    @handle_errors
    def support_ticket_create():
        data = request.get_json(silent=True) or {}
        ticket = container.support_service.create(
            summary=data.get("summary", ""),
            description=data.get("description"),
            full_name=data.get("full_name"),
            email=data.get("email"),
            phone=data.get("phone"),
            order_id=data.get("order_id"),
            issue_type=data.get("issue_type"),
            priority=_enum(TicketPriority, data.get("priority"), "priority"),
            is_urgent=bool(data.get("is_urgent")),
            source=data.get("source"),
        )
        return jsonify({"success": True, "ticket": _ticket_json(ticket)}), 201

    @app.route("/support/tickets/<int:id>/status", methods=["POST"], endpoint="support_ticket_status")
    @module_required(Module.SUPPORT)
    @handle_errors
    def support_ticket_status(id: int):
        data = request.get_json(silent=True) or {}
        status = _enum(TicketStatus, data.get("status"), "status")
        if status is None:
            raise ValidationError("Status is required")
        container.support_service.update_status(id, status)
        return jsonify({"success": True})

    @app.route("/support/tickets/bulk-status", methods=["POST"], endpoint="support_ticket_bulk_status")
    @module_required(Module.SUPPORT)
    @handle_errors
    def support_ticket_bulk_status():
        data = request.get_json(silent=True) or {}
        status = _enum(TicketStatus, data.get("status"), "status")
        if status is None:
            raise ValidationError("Status is required")
        result = container.support_service.bulk_update_status([parse_int(i, "id") for i in data.get("ids") or []], status)
        return jsonify({"success": not result["failed"], **result})

    @app.route("/support/tickets/<int:id>/priority", methods=["POST"], endpoint="support_ticket_priority")
    @module_required(Module.SUPPORT)
    @handle_errors
    def support_ticket_priority(id: int):
        data = request.get_json(silent=True) or {}
        priority = _enum(TicketPriority, data.get("priority"), "priority")
        if priority is None:
            raise ValidationError("Priority is required")
        container.support_service.assign_priority(id, priority)
        return jsonify({"success": True})

    @app.route("/support/feedback", endpoint="feedback_list")
    @module_required(Module.SUPPORT)
    @handle_errors
    def feedback_list():
        items = container.feedback_service.list(
            status=_enum(FeedbackStatus, request.args.get("status"), "status"),
            feedback_type=request.args.get("type") or None,
        )
        return jsonify({"feedback": [_feedback_json(fb) for fb in items], "stats": _stats_json()})

    @app.route("/support/feedback", methods=["POST"], endpoint="feedback_create")
    @module_required(Module.SUPPORT)
    @handle_errors
    def feedback_create():
        data = request.get_json(silent=True) or {}
        feedback_id = container.feedback_service.create(
            feedback_type=data.get("feedback_type", ""),
            subject=data.get("subject", ""),
            message=data.get("message", ""),
            customer_name=data.get("customer_name"),
            customer_email=data.get("customer_email"),
            priority=_enum(TicketPriority, data.get("priority"), "priority", TicketPriority.NORMAL),
            order_id=data.get("order_id"),
            rating=data.get("rating"),
        )
        return jsonify({"success": True, "feedback_id": feedback_id}), 201

    @app.route("/support/feedback/<int:feedback_id>/responses", methods=["GET", "POST"], endpoint="feedback_responses")
    @module_required(Module.SUPPORT)
    @handle_errors
    def feedback_responses(feedback_id: int):
        if request.method == "POST":
            data = request.get_json(silent=True) or {}
            response_id = container.feedback_service.respond(
                feedback_id, responder_id=current_user().user_id, message=data.get("message", "")
            )
            return jsonify({"success": True, "response_id": response_id}), 201
        responses = container.feedback_service.responses(feedback_id)
        return jsonify(
            {
                "responses": [
                    {
                        "response_id": r.response_id,
                        "responder_id": r.responder_id,
                        "message": r.message,
                        "created_at": r.created_at.isoformat(),
                    }
                    for r in responses
                ]
            }
        )

    @app.route("/support/feedback/<int:feedback_id>/resolve", methods=["POST"], endpoint="feedback_resolve")
    @module_required(Module.SUPPORT)
    @handle_errors
    def feedback_resolve(feedback_id: int):
        data = request.get_json(silent=True) or {}
        hours = container.feedback_service.resolve(feedback_id, resolution_notes=data.get("resolution_notes"))
        return jsonify({"success": True, "resolution_time_hours": str(hours)})
