from __future__ import annotations

import json
from dataclasses import asdict

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local, parse_hhmm, parse_optional_date
from ..common.validators import parse_int
from ..container import Container
from ..core.enums import EvidenceType, Module, ReviewStatus, Role, SubmissionType, TaskPriority, TaskStatus, TaskType
from ..core.exceptions import ValidationError
from ..users.service import is_privileged
from ..web.auth import current_user, handle_errors, module_required, role_required
from .evidence import save_evidence
from .model import AutoApproveSettings, CommentThread, Task, TaskComment, TaskFilters, TaskTemplate


def _enum(enum_cls, value, field_name: str, default=None):
    if value in (None, "", "all"):
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}")


def _checklist(value):
    # multipart forms carry the checklist as a JSON string
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else None
        except ValueError:
            raise ValidationError("Invalid checklist data")
    return value


def _task_json(t: Task) -> dict:
    return {
        "task_id": t.task_id,
        "title": t.title,
        "description": t.description,
        "task_type": t.task_type.value,
        "status": t.status.value,
        "priority": t.priority.value,
        "evidence_required": t.evidence_required.value,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "due_datetime": t.due_datetime.isoformat() if t.due_datetime else None,
        "template_id": t.template_id,
        "is_recurring_instance": t.is_recurring_instance,
        "instance_date": t.instance_date.isoformat() if t.instance_date else None,
        "assigned_to": t.assigned_to,
        "reviewer_id": t.reviewer_id,
        "auto_approved": t.auto_approved,
        "tags": list(t.tags),
        "submitted_at": t.submitted_at.isoformat() if t.submitted_at else None,
        "reviewed_at": t.reviewed_at.isoformat() if t.reviewed_at else None,
    }


def _template_json(t: TaskTemplate) -> dict:
    return {
        "template_id": t.template_id,
        "title": t.title,
        "description": t.description,
        "task_type": t.task_type.value,
        "priority": t.priority.value,
        "evidence_required": t.evidence_required.value,
        "assigned_to": t.assigned_to,
        "reviewer_id": t.reviewer_id,
        "due_time": t.due_time.strftime("%H:%M") if t.due_time else None,
        "weekdays": list(t.weekdays),
        "day_of_month": t.day_of_month,
        "start_date": t.start_date.isoformat(),
        "end_date": t.end_date.isoformat() if t.end_date else None,
        "is_active": t.is_active,
    }


def _comment_json(c: TaskComment) -> dict:
    return {
        "comment_id": c.comment_id,
        "task_id": c.task_id,
        "author_id": c.author_id,
        "content": c.content,
        "parent_comment_id": c.parent_comment_id,
        "is_edited": c.is_edited,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def _thread_json(thread: CommentThread) -> dict:
    return {**_comment_json(thread.comment), "replies": [_comment_json(r) for r in thread.replies]}


def _settings_json(s: AutoApproveSettings) -> dict:
    return {"auto_approve_daily": s.auto_approve_daily, "auto_approve_cutoff_hours": s.cutoff_hours}


def _template_fields(data) -> dict:
    start_date = parse_optional_date(data.get("start_date"), "Start date")
    if start_date is None:
        raise ValidationError("Start date is required")
    return dict(
        title=data.get("title", ""),
        description=data.get("description"),
        task_type=_enum(TaskType, data.get("task_type"), "task type", TaskType.DAILY),
        assigned_to=parse_int(data.get("assigned_to"), "assigned to", 0),
        start_date=start_date,
        end_date=parse_optional_date(data.get("end_date"), "End date"),
        due_time=parse_hhmm(data.get("due_time"), "Due time"),
        weekdays=data.get("weekdays") or (),
        day_of_month=parse_int(data.get("day_of_month"), "day of month"),
        priority=_enum(TaskPriority, data.get("priority"), "priority", TaskPriority.MEDIUM),
        evidence_required=_enum(EvidenceType, data.get("evidence_required"), "evidence type", EvidenceType.NONE),
        reviewer_id=parse_int(data.get("reviewer_id"), "reviewer id"),
    )


def register(app: Flask, container: Container) -> None:
    comments = container.task_comment_service

    def _filters_from_args() -> TaskFilters:
        user = current_user()
        args = request.args
        assigned_to = parse_int(args.get("assigned_to"), "assigned to")
        if not is_privileged(user.role):
            assigned_to = user.user_id
        return TaskFilters(
            assigned_to=assigned_to,
            status=_enum(TaskStatus, args.get("status"), "status"),
            task_type=_enum(TaskType, args.get("task_type"), "task type"),
            priority=_enum(TaskPriority, args.get("priority"), "priority"),
            due_from=parse_optional_date(args.get("from"), "From date"),
            due_to=parse_optional_date(args.get("to"), "To date"),
        )

    @app.route("/tasks", endpoint="tasks_list")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_list():
        tasks = container.task_service.list_tasks(_filters_from_args())
        counts = comments.counts(t.task_id for t in tasks)
        return jsonify({"tasks": [{**_task_json(t), "comment_count": counts.get(t.task_id, 0)} for t in tasks]})

    @app.route("/tasks/analytics", endpoint="tasks_analytics")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_analytics():
        tasks = container.task_service.list_tasks(_filters_from_args())
        return jsonify(container.task_service.analytics(tasks))

    @app.route("/tasks", methods=["POST"], endpoint="tasks_create")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_create():
        data = request.get_json(silent=True) or {}
        task_id = container.task_service.create_task(
            created_by=current_user().user_id,
            title=data.get("title", ""),
            description=data.get("description"),
            assigned_to=parse_int(data.get("assigned_to"), "assigned to", 0),
            due_date=parse_optional_date(data.get("due_date"), "Due date"),
            due_time=parse_hhmm(data.get("due_time"), "Due time"),
            priority=_enum(TaskPriority, data.get("priority"), "priority", TaskPriority.MEDIUM),
            evidence_required=_enum(EvidenceType, data.get("evidence_required"), "evidence type", EvidenceType.NONE),
            reviewer_id=parse_int(data.get("reviewer_id"), "reviewer id"),
            tags=data.get("tags") or (),
        )
        return jsonify({"success": True, "task_id": task_id}), 201

    @app.route("/tasks/templates", endpoint="tasks_templates")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_templates():
        user = current_user()
        assigned_to = parse_int(request.args.get("assigned_to"), "assigned to")
        include_inactive = request.args.get("include_inactive") in ("1", "true")
        if not is_privileged(user.role):
            assigned_to, include_inactive = user.user_id, False
        templates = container.task_service.list_templates(active_only=not include_inactive, assigned_to=assigned_to)
        return jsonify({"templates": [_template_json(t) for t in templates]})

    @app.route("/tasks/templates", methods=["POST"], endpoint="tasks_template_create")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_template_create():
        data = request.get_json(silent=True) or {}
        template_id = container.task_service.create_template(
            created_by=current_user().user_id, **_template_fields(data)
        )
        return jsonify({"success": True, "template_id": template_id}), 201

    @app.route("/tasks/templates/<int:template_id>", methods=["PUT"], endpoint="tasks_template_update")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_template_update(template_id: int):
        data = request.get_json(silent=True) or {}
        template = container.task_service.update_template(template_id, **_template_fields(data))
        return jsonify({"success": True, "template": _template_json(template)})

    @app.route("/tasks/templates/<int:template_id>", methods=["DELETE"], endpoint="tasks_template_deactivate")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_template_deactivate(template_id: int):
        container.task_service.deactivate_template(template_id)
        return jsonify({"success": True})

    @app.route("/tasks/templates/<int:template_id>/activate", methods=["POST"], endpoint="tasks_template_activate")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_template_activate(template_id: int):
        container.task_service.activate_template(template_id)
        return jsonify({"success": True})

    @app.route("/tasks/<int:task_id>/start", methods=["POST"], endpoint="tasks_start")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_start(task_id: int):
        container.task_service.start_task(task_id, user_id=current_user().user_id)
        return jsonify({"success": True})

    @app.route("/tasks/<int:task_id>/submit", methods=["POST"], endpoint="tasks_submit")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_submit(task_id: int):
        data = request.get_json(silent=True) or request.form
        user = current_user()
        evidence_type = _enum(EvidenceType, data.get("evidence_type"), "evidence type")

        file_path = None
        upload = request.files.get("file")
        if upload:
            container.task_service.require_submittable(task_id, user_id=user.user_id)
            file_path = save_evidence(
                upload.stream,
                upload.filename,
                upload_dir=app.config["UPLOAD_FOLDER"],
                task_id=task_id,
                evidence_type=evidence_type,
                now=now_local(),
            )

        status = container.task_service.submit(
            task_id,
            user_id=user.user_id,
            submission_type=_enum(SubmissionType, data.get("submission_type"), "submission type", SubmissionType.COMPLETION),
            evidence_type=evidence_type,
            file_path=file_path,
            link_url=data.get("link_url"),
            notes=data.get("notes"),
            checklist_data=_checklist(data.get("checklist_data")),
        )
        return jsonify({"success": True, "status": status.value})

    @app.route("/tasks/<int:task_id>/review", methods=["POST"], endpoint="tasks_review")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_review(task_id: int):
        data = request.get_json(silent=True) or {}
        user = current_user()
        decision = _enum(ReviewStatus, data.get("decision"), "review decision")
        if decision is None:
            raise ValidationError("Review decision is required")
        status = container.task_service.review(
            task_id,
            reviewer_id=user.user_id,
            reviewer_role=user.role,
            decision=decision,
            notes=data.get("notes"),
        )
        return jsonify({"success": True, "status": status.value})

    @app.route("/tasks/bulk", methods=["POST"], endpoint="tasks_bulk")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_bulk():
        data = request.get_json(silent=True) or {}
        affected = container.task_service.bulk_action(
            data.get("action", ""),
            data.get("task_ids") or [],
            data.get("data") or {},
            actor_role=current_user().role,
        )
        return jsonify({"success": True, "affected": affected})

    @app.route("/tasks/<int:task_id>/reviews", endpoint="tasks_reviews")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_reviews(task_id: int):
        user = current_user()
        reviews = container.task_service.reviews(task_id, user_id=user.user_id, privileged=is_privileged(user.role))
        return jsonify(
            {
                "reviews": [
                    {
                        "review_id": r.review_id,
                        "reviewer_id": r.reviewer_id,
                        "status": r.status.value,
                        "review_notes": r.review_notes,
                        "created_at": r.created_at.isoformat() if r.created_at else None,
                    }
                    for r in reviews
                ]
            }
        )

    @app.route("/tasks/<int:task_id>/comments", endpoint="tasks_comments")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_comments(task_id: int):
        user = current_user()
        threads = comments.thread(task_id, user_id=user.user_id, privileged=is_privileged(user.role))
        return jsonify({"comments": [_thread_json(t) for t in threads]})

    @app.route("/tasks/<int:task_id>/comments", methods=["POST"], endpoint="tasks_comment_add")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_comment_add(task_id: int):
        data = request.get_json(silent=True) or {}
        user = current_user()
        comment_id = comments.add(
            task_id,
            author_id=user.user_id,
            privileged=is_privileged(user.role),
            content=data.get("content", ""),
            parent_comment_id=parse_int(data.get("parent_comment_id"), "parent comment id"),
        )
        return jsonify({"success": True, "comment_id": comment_id}), 201

    @app.route("/tasks/comments/<int:comment_id>", methods=["PUT"], endpoint="tasks_comment_edit")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_comment_edit(comment_id: int):
        data = request.get_json(silent=True) or {}
        comments.edit(comment_id, user_id=current_user().user_id, content=data.get("content", ""))
        return jsonify({"success": True})

    @app.route("/tasks/comments/<int:comment_id>", methods=["DELETE"], endpoint="tasks_comment_delete")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_comment_delete(comment_id: int):
        user = current_user()
        comments.delete(comment_id, user_id=user.user_id, role=user.role)
        return jsonify({"success": True})

    @app.route("/tasks/settings", endpoint="tasks_settings")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_settings():
        user_id = parse_int(request.args.get("user_id"), "user id")
        return jsonify({"user_id": user_id, **_settings_json(container.task_service.auto_approve_settings(user_id))})

    @app.route("/tasks/settings", methods=["PUT"], endpoint="tasks_settings_update")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_settings_update():
        data = request.get_json(silent=True) or {}
        if "auto_approve_cutoff_hours" not in data:
            raise ValidationError("Cutoff hours is required")
        settings = container.task_service.set_auto_approve_settings(
            auto_approve_daily=bool(data.get("auto_approve_daily", True)),
            cutoff_hours=parse_int(data.get("auto_approve_cutoff_hours"), "cutoff hours"),
            user_id=parse_int(data.get("user_id"), "user id"),
            actor_role=current_user().role,
        )
        return jsonify({"success": True, **_settings_json(settings)})

    @app.route("/tasks/settings", methods=["DELETE"], endpoint="tasks_settings_clear")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_settings_clear():
        container.task_service.clear_auto_approve_settings(
            user_id=parse_int(request.args.get("user_id"), "user id"), actor_role=current_user().role
        )
        return jsonify({"success": True})

    @app.route("/tasks/history", endpoint="tasks_history")
    @module_required(Module.TASKS)
    @handle_errors
    def tasks_history():
        user = current_user()
        target = parse_int(request.args.get("user_id"), "user id", user.user_id)
        if target != user.user_id and not is_privileged(user.role):
            target = user.user_id
        history = container.recurrence_service.history(
            target,
            parse_optional_date(request.args.get("from"), "From date"),
            parse_optional_date(request.args.get("to"), "To date"),
        )
        return jsonify({"history": history})

    @app.route("/tasks/recurrence/run", methods=["POST"], endpoint="tasks_recurrence_run")
    @role_required(Role.ADMIN, Role.MANAGER)
    @handle_errors
    def tasks_recurrence_run():
        data = request.get_json(silent=True) or {}
        target = parse_optional_date(data.get("date"), "Date")
        if target is None:
            result = container.recurrence_service.ensure_today(force=bool(data.get("force")))
        else:
            result = container.recurrence_service.create_instances_for_date(
                target, parse_int(data.get("user_id"), "user id")
            )
        app.logger.info("Manual recurrence run by user %s", current_user().user_id)
        payload = asdict(result)
        payload["created_ids"] = list(result.created_ids)
        return jsonify({"success": True, **payload})
