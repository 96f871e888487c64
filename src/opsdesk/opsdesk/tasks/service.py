from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from functools import partial
from typing import Iterable, Optional, Sequence

from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_in_range, require_max_length, require_non_empty
from ..core.constants import (
    DEFAULT_AUTO_APPROVE_CUTOFF_HOURS,
    DEFAULT_DUE_TIME,
    MAX_AUTO_APPROVE_CUTOFF_HOURS,
    MAX_COMMENT_LENGTH,
    TASK_HISTORY_DAYS,
)
from ..core.enums import (
    DONE_TASK_STATUSES,
    OPEN_TASK_STATUSES,
    EvidenceType,
    ReviewStatus,
    Role,
    SubmissionType,
    TaskPriority,
    TaskStatus,
    TaskType,
)
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..users.repository import UserRepository
from .model import (
    AutoApproveSettings,
    CommentThread,
    NewTask,
    RecurrenceResult,
    Task,
    TaskComment,
    TaskFilters,
    TaskReview,
    TaskTemplate,
)
from .recurrence import RecurrenceRule
from .repository import (
    RecurrenceRunRepository,
    TaskCommentRepository,
    TaskRepository,
    TaskSettingsRepository,
    TaskTemplateRepository,
)

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
_SUBMITTABLE = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.REJECTED})
_MANAGERS = (Role.ADMIN, Role.MANAGER)


def can_view_task(task: Task, user_id: int, privileged: bool) -> bool:
    return privileged or user_id in (task.assigned_to, task.reviewer_id, task.assigned_by)


class RecurrenceService:
    """Expands recurring templates into dated task instances."""

    def __init__(
        self,
        templates: TaskTemplateRepository,
        tasks: TaskRepository,
        runs: RecurrenceRunRepository,
        *,
        rule: Optional[RecurrenceRule] = None,
    ):
        self._templates = templates
        self._tasks = tasks
        self._runs = runs
        self._rule = rule or RecurrenceRule()

    def create_instances_for_date(self, target_date: date, user_id: Optional[int] = None) -> RecurrenceResult:
        templates = [
            t
            for t in self._templates.list_active_recurring(assigned_to=user_id)
            if self._rule.occurs_on(t, target_date)
        ]

        created: list[int] = []
        for t in templates:
            task_id = self._tasks.create_instance(
                NewTask(
                    title=t.title,
                    description=t.description,
                    task_type=t.task_type,
                    priority=t.priority,
                    evidence_required=t.evidence_required,
                    assigned_to=t.assigned_to,
                    assigned_by=t.created_by,
                    reviewer_id=t.reviewer_id,
                    due_date=target_date,
                    due_datetime=self._rule.due_datetime(t, target_date),
                    template_id=t.template_id,
                    instance_date=target_date,
                )
            )
            if task_id is not None:
                created.append(task_id)

        expired = self._tasks.expire_open_instances(before=target_date, assigned_to=user_id)

        result = RecurrenceResult(
            templates_found=len(templates),
            instances_created=len(created),
            expired_tasks=expired,
            created_ids=tuple(created),
        )
        logger.info(
            "Recurrence for %s: created=%d templates=%d expired=%d",
            target_date.isoformat(),
            result.instances_created,
            result.templates_found,
            result.expired_tasks,
        )
        return result

    def ensure_today(self, today: Optional[date] = None, *, force: bool = False, now: Optional[datetime] = None) -> RecurrenceResult:
        """Run recurrence at most once per day unless ``force`` is set."""

        now = now or now_local()
        today = today or now.date()

        marker = self._runs.get(today)
        if marker is not None and not force:
            return RecurrenceResult(
                templates_found=marker.templates_found,
                instances_created=0,
                expired_tasks=0,
                skipped=True,
            )

        result = self.create_instances_for_date(today)
        self._runs.record(today, result, ran_at=now)
        return result

    def history(self, user_id: int, start: Optional[date] = None, end: Optional[date] = None) -> list[dict]:
        end = end or now_local().date()
        start = start or end - timedelta(days=TASK_HISTORY_DAYS)
        if start > end:
            raise ValidationError("Start date must be before end date")

        tasks = self._tasks.list(
            TaskFilters(assigned_to=user_id, task_type=TaskType.DAILY, due_from=start, due_to=end, recurring_only=True)
        )
        by_day: dict[date, list[Task]] = {}
        for t in tasks:
            by_day.setdefault(t.instance_date or t.due_date, []).append(t)

        out = []
        for day in sorted(by_day, reverse=True):
            items = by_day[day]
            completed = sum(1 for t in items if t.status in DONE_TASK_STATUSES)
            out.append(
                {
                    "date": day.isoformat(),
                    "total": len(items),
                    "completed": completed,
                    "completion_rate": round(completed / len(items) * 100),
                    "tasks": [{"task_id": t.task_id, "title": t.title, "status": t.status.value} for t in items],
                }
            )
        return out


class TaskService:
    def __init__(
        self,
        tasks: TaskRepository,
        templates: TaskTemplateRepository,
        users: UserRepository,
        *,
        settings: Optional[TaskSettingsRepository] = None,
        auto_approve_daily: bool = True,
        auto_approve_cutoff_hours: int = DEFAULT_AUTO_APPROVE_CUTOFF_HOURS,
    ):
        """``auto_approve_*`` are the configured defaults; rows in ``settings`` override them."""

        self._tasks = tasks
        self._templates = templates
        self._users = users
        self._settings = settings
        self._defaults = AutoApproveSettings(
            auto_approve_daily=bool(auto_approve_daily), cutoff_hours=int(auto_approve_cutoff_hours)
        )

    def get(self, task_id: int) -> Task:
        task = self._tasks.get_by_id(task_id)
        if not task:
            raise NotFoundError("Task not found")
        return task

    def reviews(self, task_id: int, *, user_id: int, privileged: bool) -> Sequence[TaskReview]:
        task = self.get(task_id)
        if not can_view_task(task, user_id, privileged):
            raise AuthorizationError("You do not have permission")
        return self._tasks.list_reviews(task_id)

    def list_tasks(self, filters: TaskFilters) -> Sequence[Task]:
        return self._tasks.list(filters)

    def _require_user(self, user_id: Optional[int], field_name: str) -> None:
        if user_id is None:
            return
        user = self._users.get_by_id(user_id)
        if not user or not user.is_active:
            raise ValidationError(f"{field_name} does not exist or is inactive")

    def create_task(
        self,
        *,
        created_by: int,
        title: str,
        assigned_to: int,
        due_date: Optional[date],
        due_time: Optional[time] = None,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        evidence_required: EvidenceType = EvidenceType.NONE,
        reviewer_id: Optional[int] = None,
        tags: Iterable[str] = (),
    ) -> int:
        """Create a one-off task. Recurring work goes through ``create_template``."""

        title = require_non_empty(title, "Title")
        if due_date is None:
            raise ValidationError("A one-off task needs a due date")
        self._require_user(assigned_to, "Assignee")
        self._require_user(reviewer_id, "Reviewer")

        due = due_time or datetime.strptime(DEFAULT_DUE_TIME, "%H:%M").time()
        task_id = self._tasks.create(
            NewTask(
                title=title,
                description=optional_text(description),
                task_type=TaskType.ONE_OFF,
                priority=priority,
                evidence_required=evidence_required,
                assigned_to=assigned_to,
                assigned_by=created_by,
                reviewer_id=reviewer_id,
                due_date=due_date,
                due_datetime=datetime.combine(due_date, due),
                tags=tuple(t.strip() for t in tags if t and t.strip()),
            )
        )
        logger.info("Task %s created for user %s", task_id, assigned_to)
        return task_id

    def _build_template(
        self,
        template_id: int,
        *,
        created_by: Optional[int],
        title: str,
        task_type: TaskType,
        assigned_to: int,
        start_date: date,
        description: Optional[str] = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        evidence_required: EvidenceType = EvidenceType.NONE,
        reviewer_id: Optional[int] = None,
        due_time: Optional[time] = None,
        weekdays: Iterable[int] = (),
        day_of_month: Optional[int] = None,
        end_date: Optional[date] = None,
    ) -> TaskTemplate:
        title = require_non_empty(title, "Title")
        if not task_type.is_recurring:
            raise ValidationError("Templates must be daily, weekly or monthly")
        if end_date is not None and end_date < start_date:
            raise ValidationError("End date must be on or after start date")

        days = tuple(sorted({int(d) for d in weekdays}))
        if any(d < 0 or d > 6 for d in days):
            raise ValidationError("Weekdays must be between 0 (Monday) and 6 (Sunday)")
        if day_of_month is not None and not 1 <= int(day_of_month) <= 31:
            raise ValidationError("Day of month must be between 1 and 31")
        self._require_user(assigned_to, "Assignee")
        self._require_user(reviewer_id, "Reviewer")

        return TaskTemplate(
            template_id=template_id,
            title=title,
            description=optional_text(description),
            task_type=task_type,
            priority=priority,
            evidence_required=evidence_required,
            assigned_to=assigned_to,
            reviewer_id=reviewer_id,
            due_time=due_time,
            weekdays=days if task_type == TaskType.WEEKLY else (),
            day_of_month=int(day_of_month) if task_type == TaskType.MONTHLY and day_of_month else None,
            start_date=start_date,
            end_date=end_date,
            created_by=created_by,
        )

    def create_template(self, *, created_by: int, **fields) -> int:
        """Create a recurring template; ``fields`` are the keyword arguments of ``_build_template``."""

        template = self._build_template(0, created_by=created_by, **fields)
        template_id = self._templates.create(template)
        logger.info("Template %s (%s) created for user %s", template_id, template.task_type.value, template.assigned_to)
        return template_id

    def update_template(self, template_id: int, **fields) -> TaskTemplate:
        """Replace a template's schedule and details. Instances already created keep their old values."""

        current = self.get_template(template_id)
        template = replace(
            self._build_template(template_id, created_by=current.created_by, **fields),
            is_active=current.is_active,
        )
        self._templates.update(template)
        logger.info("Template %s updated", template_id)
        return template

    def get_template(self, template_id: int) -> TaskTemplate:
        template = self._templates.get_by_id(template_id)
        if not template:
            raise NotFoundError("Template not found")
        return template

    def list_templates(self, *, active_only: bool = True, assigned_to: Optional[int] = None) -> Sequence[TaskTemplate]:
        return self._templates.list(active_only=active_only, assigned_to=assigned_to)

    def deactivate_template(self, template_id: int) -> None:
        self.get_template(template_id)
        self._templates.set_active(template_id, is_active=False)

    def activate_template(self, template_id: int) -> None:
        self.get_template(template_id)
        self._templates.set_active(template_id, is_active=True)

    def auto_approve_settings(self, user_id: Optional[int] = None) -> AutoApproveSettings:
        """Effective auto-approve rule for ``user_id``.

        A user's own row wins over the company-wide row, which wins over the
        configured defaults. ``user_id=None`` asks for the company-wide rule.
        """

        found = None
        if self._settings is not None:
            if user_id is not None:
                found = self._settings.get(user_id=user_id)
            found = found or self._settings.get()
        return found or self._defaults

    def set_auto_approve_settings(
        self,
        *,
        auto_approve_daily: bool,
        cutoff_hours: int,
        user_id: Optional[int] = None,
        actor_role: Role,
    ) -> AutoApproveSettings:
        if actor_role not in _MANAGERS:
            raise AuthorizationError("You do not have permission")
        if self._settings is None:
            raise ValidationError("Task settings are not stored in this deployment")
        require_in_range(cutoff_hours, "Cutoff hours", 0, MAX_AUTO_APPROVE_CUTOFF_HOURS)
        if user_id is not None:
            self._require_user(user_id, "User")

        settings = AutoApproveSettings(auto_approve_daily=bool(auto_approve_daily), cutoff_hours=int(cutoff_hours))
        self._settings.save(settings, user_id=user_id)
        logger.info(
            "Auto-approve for %s set to daily=%s cutoff=%sh",
            f"user {user_id}" if user_id is not None else "everyone",
            settings.auto_approve_daily,
            settings.cutoff_hours,
        )
        return settings

    def clear_auto_approve_settings(self, *, user_id: Optional[int] = None, actor_role: Role) -> None:
        """Drop an override so the next level (company-wide, then configured defaults) applies again."""

        if actor_role not in _MANAGERS:
            raise AuthorizationError("You do not have permission")
        if self._settings is None or not self._settings.delete(user_id=user_id):
            raise NotFoundError("No task settings to clear")

    def start_task(self, task_id: int, *, user_id: int) -> None:
        task = self.get(task_id)
        if task.assigned_to != user_id:
            raise AuthorizationError("Only the assignee can start this task")
        if task.status != TaskStatus.PENDING:
            raise ValidationError("Only pending tasks can be started")
        self._tasks.update_status(task_id, TaskStatus.IN_PROGRESS)

    @staticmethod
    def _validate_evidence(
        evidence_type: Optional[EvidenceType],
        *,
        file_path: Optional[str],
        link_url: Optional[str],
        checklist_data: Optional[list],
    ) -> None:
        if evidence_type in (EvidenceType.PHOTO, EvidenceType.FILE) and not file_path:
            raise ValidationError("A file is required for this evidence type")
        if evidence_type == EvidenceType.LINK and not _URL_RE.match(link_url or ""):
            raise ValidationError("A valid http(s) link is required")
        if evidence_type == EvidenceType.CHECKLIST and not checklist_data:
            raise ValidationError("Checklist cannot be empty")

    def _has_required_evidence(self, task: Task) -> bool:
        if task.evidence_required == EvidenceType.NONE:
            return True
        return any(s.evidence_type == task.evidence_required for s in self._tasks.list_submissions(task.task_id))

    def _completion_status(self, task: Task, now: datetime) -> TaskStatus:
        if task.task_type != TaskType.DAILY or not task.is_recurring_instance:
            return TaskStatus.SUBMITTED_FOR_REVIEW
        settings = self.auto_approve_settings(task.assigned_to)
        if not settings.auto_approve_daily:
            return TaskStatus.SUBMITTED_FOR_REVIEW
        due = task.due_datetime or datetime.combine(task.due_date or now.date(), time(23, 59))
        if now - due <= timedelta(hours=settings.cutoff_hours):
            return TaskStatus.DONE_AUTO_APPROVED
        return TaskStatus.SUBMITTED_FOR_REVIEW

    def require_submittable(self, task_id: int, *, user_id: int) -> Task:
        """The task, if ``user_id`` may submit to it right now. Checked before evidence files are stored."""

        task = self.get(task_id)
        if task.assigned_to != user_id:
            raise AuthorizationError("Only the assignee can submit this task")
        if task.status not in _SUBMITTABLE:
            raise ValidationError(f"Task cannot be submitted while {task.status.value}")
        return task

    def submit(
        self,
        task_id: int,
        *,
        user_id: int,
        submission_type: SubmissionType,
        evidence_type: Optional[EvidenceType] = None,
        file_path: Optional[str] = None,
        link_url: Optional[str] = None,
        notes: Optional[str] = None,
        checklist_data: Optional[list] = None,
        now: Optional[datetime] = None,
    ) -> TaskStatus:
        """Attach evidence/notes, or complete the task. Returns the task status afterwards."""

        now = now or now_local()
        task = self.require_submittable(task_id, user_id=user_id)
        if evidence_type == EvidenceType.NONE:
            evidence_type = None

        self._validate_evidence(evidence_type, file_path=file_path, link_url=link_url, checklist_data=checklist_data)
        if submission_type == SubmissionType.EVIDENCE and evidence_type is None:
            raise ValidationError("Evidence type is required")

        self._tasks.add_submission(
            task_id=task_id,
            submission_type=submission_type,
            submitted_by=user_id,
            evidence_type=evidence_type,
            file_path=file_path,
            link_url=link_url,
            notes=optional_text(notes),
            checklist_data=checklist_data,
        )

        if submission_type != SubmissionType.COMPLETION:
            if task.status == TaskStatus.PENDING:
                self._tasks.update_status(task_id, TaskStatus.IN_PROGRESS)
                return TaskStatus.IN_PROGRESS
            return task.status

        if not self._has_required_evidence(task):
            raise ValidationError(f"{task.evidence_required.value.capitalize()} evidence is required to complete this task")

        status = self._completion_status(task, now)
        self._tasks.update_status(
            task_id,
            status,
            auto_approved=status == TaskStatus.DONE_AUTO_APPROVED,
            submitted_at=now,
        )
        logger.info("Task %s submitted -> %s", task_id, status.value)
        return status

    def review(
        self,
        task_id: int,
        *,
        reviewer_id: int,
        reviewer_role: Role,
        decision: ReviewStatus,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TaskStatus:
        task = self.get(task_id)
        privileged = reviewer_role in _MANAGERS
        if not privileged and task.reviewer_id != reviewer_id:
            raise AuthorizationError("Only the assigned reviewer or a manager can review this task")
        if task.status != TaskStatus.SUBMITTED_FOR_REVIEW:
            raise ValidationError("Only submitted tasks can be reviewed")
        if decision == ReviewStatus.REJECTED and not optional_text(notes):
            raise ValidationError("Please give a reason for rejection")

        self._tasks.add_review(task_id=task_id, reviewer_id=reviewer_id, status=decision, review_notes=optional_text(notes))
        status = TaskStatus.APPROVED if decision == ReviewStatus.APPROVED else TaskStatus.REJECTED
        self._tasks.update_status(task_id, status, reviewed_at=now or now_local())
        return status

    def bulk_action(self, action: str, task_ids: Sequence[int], data: Optional[dict] = None, *, actor_role: Role) -> int:
        if actor_role not in _MANAGERS:
            raise AuthorizationError("You do not have permission")
        if not task_ids:
            raise ValidationError("No tasks selected")
        data = data or {}

        if action == "change_status":
            try:
                status = TaskStatus(data.get("status"))
            except ValueError:
                raise ValidationError("Invalid status")
            apply = partial(self._tasks.update_status, status=status)
        elif action == "change_priority":
            try:
                priority = TaskPriority(data.get("priority"))
            except ValueError:
                raise ValidationError("Invalid priority")
            apply = partial(self._tasks.update_priority, priority=priority)
        elif action == "assign":
            assignee = data.get("assigned_to")
            if not assignee:
                raise ValidationError("Assignee is required")
            self._require_user(int(assignee), "Assignee")
            apply = partial(self._tasks.update_assignee, assigned_to=int(assignee))
        elif action == "delete":
            apply = self._tasks.delete
        else:
            raise ValidationError(f"Unknown bulk action: {action}")

        affected = sum(1 for tid in task_ids if apply(int(tid)))
        logger.info("Bulk %s on %d tasks (%d affected)", action, len(task_ids), affected)
        return affected

    @staticmethod
    def analytics(tasks: Sequence[Task]) -> dict:
        total = len(tasks)
        done = [t for t in tasks if t.status in DONE_TASK_STATUSES]
        on_time = [t for t in done if t.submitted_at and t.due_datetime and t.submitted_at <= t.due_datetime]

        return {
            "total": total,
            "completed": len(done),
            "open": sum(1 for t in tasks if t.status in OPEN_TASK_STATUSES),
            "completion_rate": round(len(done) / total * 100) if total else 0,
            "on_time_rate": round(len(on_time) / len(done) * 100) if done else 0,
            "auto_approved": sum(1 for t in tasks if t.auto_approved),
            "by_status": dict(Counter(t.status.value for t in tasks)),
            "by_priority": dict(Counter(t.priority.value for t in tasks)),
        }


class TaskCommentService:
    """Discussion on a task: top-level comments, each with one level of replies."""

    def __init__(self, comments: TaskCommentRepository, tasks: TaskRepository):
        self._comments = comments
        self._tasks = tasks

    def _visible_task(self, task_id: int, user_id: int, privileged: bool) -> Task:
        task = self._tasks.get_by_id(task_id)
        if not task:
            raise NotFoundError("Task not found")
        if not can_view_task(task, user_id, privileged):
            raise AuthorizationError("You do not have permission")
        return task

    def _comment(self, comment_id: int) -> TaskComment:
        comment = self._comments.get_by_id(comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        return comment

    def thread(self, task_id: int, *, user_id: int, privileged: bool) -> list[CommentThread]:
        self._visible_task(task_id, user_id, privileged)
        comments = self._comments.list_for_task(task_id)

        replies: dict[int, list[TaskComment]] = {}
        for c in comments:
            if c.parent_comment_id is not None:
                replies.setdefault(c.parent_comment_id, []).append(c)
        return [
            CommentThread(comment=c, replies=tuple(replies.get(c.comment_id, ())))
            for c in comments
            if c.parent_comment_id is None
        ]

    def add(
        self,
        task_id: int,
        *,
        author_id: int,
        privileged: bool,
        content: str,
        parent_comment_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        self._visible_task(task_id, author_id, privileged)
        content = require_max_length(require_non_empty(content, "Comment"), "Comment", MAX_COMMENT_LENGTH)

        if parent_comment_id is not None:
            parent = self._comment(parent_comment_id)
            if parent.task_id != task_id:
                raise ValidationError("Replies must stay on the same task")
            # a reply to a reply joins the top-level thread
            parent_comment_id = parent.parent_comment_id or parent.comment_id

        now = now or now_local()
        comment_id = self._comments.add(
            TaskComment(
                comment_id=0,
                task_id=task_id,
                author_id=author_id,
                content=content,
                parent_comment_id=parent_comment_id,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Comment %s added to task %s by user %s", comment_id, task_id, author_id)
        return comment_id

    def edit(self, comment_id: int, *, user_id: int, content: str, now: Optional[datetime] = None) -> None:
        comment = self._comment(comment_id)
        if comment.author_id != user_id:
            raise AuthorizationError("Only the author can edit this comment")
        content = require_max_length(require_non_empty(content, "Comment"), "Comment", MAX_COMMENT_LENGTH)
        self._comments.update_content(comment_id, content, updated_at=now or now_local())

    def delete(self, comment_id: int, *, user_id: int, role: Role) -> None:
        comment = self._comment(comment_id)
        if comment.author_id != user_id and role not in _MANAGERS:
            raise AuthorizationError("You cannot delete this comment")
        self._comments.delete(comment_id)
        logger.info("Comment %s on task %s deleted by user %s", comment_id, comment.task_id, user_id)

    def counts(self, task_ids: Iterable[int]) -> dict[int, int]:
        """Comment count per task id, 0 for tasks nobody has commented on."""

        ids = sorted({int(t) for t in task_ids})
        found = self._comments.count_by_task(ids) if ids else {}
        return {tid: found.get(tid, 0) for tid in ids}
