from __future__ import annotations

import json
from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import EvidenceType, ReviewStatus, SubmissionType, TaskPriority, TaskStatus, TaskType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone, in_clause, json_column, normalize_mysql_time
from .model import (
    AutoApproveSettings,
    NewTask,
    RecurrenceResult,
    RecurrenceRun,
    Task,
    TaskComment,
    TaskFilters,
    TaskReview,
    TaskSubmission,
    TaskTemplate,
)
from .repository import (
    RecurrenceRunRepository,
    TaskCommentRepository,
    TaskRepository,
    TaskSettingsRepository,
    TaskTemplateRepository,
)

_TEMPLATE_COLUMNS = """
    template_id, title, description, task_type, priority, evidence_required, assigned_to,
    reviewer_id, due_time, weekdays, day_of_month, start_date, end_date, is_active, created_by
"""

_TASK_COLUMNS = """
    task_id, title, description, task_type, status, priority, evidence_required, due_date,
    due_datetime, template_id, is_recurring_instance, instance_date, assigned_to, assigned_by,
    reviewer_id, auto_approved, tags, submitted_at, reviewed_at
"""


def _to_template(r: dict) -> TaskTemplate:
    weekdays = r.get("weekdays") or ""
    return TaskTemplate(
        template_id=int(r["template_id"]),
        title=r["title"],
        description=r.get("description"),
        task_type=TaskType(r["task_type"]),
        priority=TaskPriority(r["priority"]),
        evidence_required=EvidenceType(r["evidence_required"]),
        assigned_to=int(r["assigned_to"]),
        reviewer_id=r.get("reviewer_id"),
        due_time=normalize_mysql_time(r.get("due_time")),
        weekdays=tuple(int(d) for d in weekdays.split(",") if d.strip()),
        day_of_month=r.get("day_of_month"),
        start_date=r["start_date"],
        end_date=r.get("end_date"),
        is_active=bool(r.get("is_active")),
        created_by=r.get("created_by"),
    )


def _to_task(r: dict) -> Task:
    return Task(
        task_id=int(r["task_id"]),
        title=r["title"],
        description=r.get("description"),
        task_type=TaskType(r["task_type"]),
        status=TaskStatus(r["status"]),
        priority=TaskPriority(r["priority"]),
        evidence_required=EvidenceType(r["evidence_required"]),
        due_date=r.get("due_date"),
        due_datetime=r.get("due_datetime"),
        template_id=r.get("template_id"),
        is_recurring_instance=bool(r.get("is_recurring_instance")),
        instance_date=r.get("instance_date"),
        assigned_to=int(r["assigned_to"]),
        assigned_by=r.get("assigned_by"),
        reviewer_id=r.get("reviewer_id"),
        auto_approved=bool(r.get("auto_approved")),
        tags=tuple(json_column(r.get("tags"), default=[])),
        submitted_at=r.get("submitted_at"),
        reviewed_at=r.get("reviewed_at"),
    )


def _template_params(t: TaskTemplate) -> tuple:
    return (
        t.title,
        t.description,
        t.task_type.value,
        t.priority.value,
        t.evidence_required.value,
        t.assigned_to,
        t.reviewer_id,
        t.due_time,
        ",".join(str(d) for d in t.weekdays) or None,
        t.day_of_month,
        t.start_date,
        t.end_date,
    )


def _task_params(task: NewTask) -> tuple:
    return (
        task.title,
        task.description,
        task.task_type.value,
        TaskStatus.PENDING.value,
        task.priority.value,
        task.evidence_required.value,
        task.due_date,
        task.due_datetime,
        task.template_id,
        1 if task.template_id is not None else 0,
        task.instance_date,
        task.assigned_to,
        task.assigned_by,
        task.reviewer_id,
        json.dumps(list(task.tags)),
    )


_INSERT_TASK = """
    INTO tasks(
        title, description, task_type, status, priority, evidence_required, due_date, due_datetime,
        template_id, is_recurring_instance, instance_date, assigned_to, assigned_by, reviewer_id, tags
    )
    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
"""


class MySQLTaskTemplateRepository(TaskTemplateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, template_id: int) -> Optional[TaskTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_TEMPLATE_COLUMNS} FROM task_templates WHERE template_id=%s", (int(template_id),))
            r = fetchone(cur)
            return _to_template(r) if r else None

    def list_active_recurring(self, *, assigned_to: Optional[int] = None) -> Sequence[TaskTemplate]:
        clauses = ["is_active=1", "task_type IN ('daily', 'weekly', 'monthly')"]
        params: list[object] = []
        if assigned_to is not None:
            clauses.append("assigned_to=%s")
            params.append(int(assigned_to))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TEMPLATE_COLUMNS} FROM task_templates {build_where(clauses)} ORDER BY template_id",
                tuple(params),
            )
            return [_to_template(r) for r in fetchall(cur)]

    def list(self, *, active_only: bool = True, assigned_to: Optional[int] = None) -> Sequence[TaskTemplate]:
        clauses: list[str] = []
        params: list[object] = []
        if active_only:
            clauses.append("is_active=1")
        if assigned_to is not None:
            clauses.append("assigned_to=%s")
            params.append(int(assigned_to))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TEMPLATE_COLUMNS} FROM task_templates {build_where(clauses)} ORDER BY title, template_id",
                tuple(params),
            )
            return [_to_template(r) for r in fetchall(cur)]

    def create(self, template: TaskTemplate) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO task_templates(
                    title, description, task_type, priority, evidence_required, assigned_to, reviewer_id,
                    due_time, weekdays, day_of_month, start_date, end_date, is_active, created_by
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (*_template_params(template), 1 if template.is_active else 0, template.created_by),
            )
            return int(cur.lastrowid)

    def set_active(self, template_id: int, *, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE task_templates SET is_active=%s WHERE template_id=%s",
                (1 if is_active else 0, int(template_id)),
            )
            return cur.rowcount > 0

    def update(self, template: TaskTemplate) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE task_templates
                SET title=%s, description=%s, task_type=%s, priority=%s, evidence_required=%s, assigned_to=%s,
                    reviewer_id=%s, due_time=%s, weekdays=%s, day_of_month=%s, start_date=%s, end_date=%s
                WHERE template_id=%s
                """,
                (*_template_params(template), int(template.template_id)),
            )
            return cur.rowcount > 0


class MySQLTaskRepository(TaskRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, task_id: int) -> Optional[Task]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE task_id=%s", (int(task_id),))
            r = fetchone(cur)
            return _to_task(r) if r else None

    def list(self, filters: TaskFilters) -> Sequence[Task]:
        clauses: list[str] = []
        params: list[object] = []
        if filters.assigned_to is not None:
            clauses.append("assigned_to=%s")
            params.append(int(filters.assigned_to))
        if filters.status is not None:
            clauses.append("status=%s")
            params.append(filters.status.value)
        if filters.task_type is not None:
            clauses.append("task_type=%s")
            params.append(filters.task_type.value)
        if filters.priority is not None:
            clauses.append("priority=%s")
            params.append(filters.priority.value)
        if filters.due_from is not None:
            clauses.append("due_date >= %s")
            params.append(filters.due_from)
        if filters.due_to is not None:
            clauses.append("due_date <= %s")
            params.append(filters.due_to)
        if filters.recurring_only:
            clauses.append("is_recurring_instance=1")

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks {build_where(clauses)} ORDER BY due_date ASC, task_id ASC",
                tuple(params),
            )
            return [_to_task(r) for r in fetchall(cur)]

    def create(self, task: NewTask) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("INSERT " + _INSERT_TASK, _task_params(task))
            return int(cur.lastrowid)

    def create_instance(self, task: NewTask) -> Optional[int]:
        # uq_task_instance (template_id, instance_date) makes repeated runs no-ops
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("INSERT IGNORE " + _INSERT_TASK, _task_params(task))
            if cur.rowcount == 0:
                return None
            return int(cur.lastrowid)

    def expire_open_instances(self, *, before: date, assigned_to: Optional[int] = None) -> int:
        sql = """
            UPDATE tasks
            SET status=%s
            WHERE is_recurring_instance=1
              AND status IN (%s, %s)
              AND instance_date < %s
        """
        params: list[object] = [TaskStatus.EXPIRED.value, TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value, before]
        if assigned_to is not None:
            sql += " AND assigned_to=%s"
            params.append(int(assigned_to))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return int(cur.rowcount)

    def update_status(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        auto_approved: Optional[bool] = None,
        submitted_at: Optional[datetime] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> bool:
        sets = ["status=%s"]
        params: list[object] = [status.value]
        if auto_approved is not None:
            sets.append("auto_approved=%s")
            params.append(1 if auto_approved else 0)
        if submitted_at is not None:
            sets.append("submitted_at=%s")
            params.append(submitted_at)
        if reviewed_at is not None:
            sets.append("reviewed_at=%s")
            params.append(reviewed_at)
        params.append(int(task_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE tasks SET {', '.join(sets)} WHERE task_id=%s", tuple(params))
            return cur.rowcount > 0

    def update_priority(self, task_id: int, priority: TaskPriority) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE tasks SET priority=%s WHERE task_id=%s", (priority.value, int(task_id)))
            return cur.rowcount > 0

    def update_assignee(self, task_id: int, assigned_to: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE tasks SET assigned_to=%s WHERE task_id=%s", (int(assigned_to), int(task_id)))
            return cur.rowcount > 0

    def delete(self, task_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM tasks WHERE task_id=%s", (int(task_id),))
            return cur.rowcount > 0

    def add_submission(
        self,
        *,
        task_id: int,
        submission_type: SubmissionType,
        submitted_by: int,
        evidence_type: Optional[EvidenceType] = None,
        file_path: Optional[str] = None,
        link_url: Optional[str] = None,
        notes: Optional[str] = None,
        checklist_data: Optional[list] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO task_submissions(
                    task_id, submission_type, evidence_type, file_path, link_url, notes, checklist_data, submitted_by
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(task_id),
                    submission_type.value,
                    evidence_type.value if evidence_type else None,
                    file_path,
                    link_url,
                    notes,
                    json.dumps(checklist_data) if checklist_data is not None else None,
                    int(submitted_by),
                ),
            )
            return int(cur.lastrowid)

    def list_submissions(self, task_id: int) -> Sequence[TaskSubmission]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT submission_id, task_id, submission_type, evidence_type, file_path, link_url,
                       notes, checklist_data, submitted_by, created_at
                FROM task_submissions
                WHERE task_id=%s
                ORDER BY created_at ASC, submission_id ASC
                """,
                (int(task_id),),
            )
            return [
                TaskSubmission(
                    submission_id=int(r["submission_id"]),
                    task_id=int(r["task_id"]),
                    submission_type=SubmissionType(r["submission_type"]),
                    evidence_type=EvidenceType(r["evidence_type"]) if r.get("evidence_type") else None,
                    file_path=r.get("file_path"),
                    link_url=r.get("link_url"),
                    notes=r.get("notes"),
                    checklist_data=json_column(r.get("checklist_data")),
                    submitted_by=int(r["submitted_by"]),
                    created_at=r.get("created_at"),
                )
                for r in fetchall(cur)
            ]

    def add_review(
        self,
        *,
        task_id: int,
        reviewer_id: int,
        status: ReviewStatus,
        review_notes: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO task_reviews(task_id, reviewer_id, status, review_notes) VALUES(%s,%s,%s,%s)",
                (int(task_id), int(reviewer_id), status.value, review_notes),
            )
            return int(cur.lastrowid)

    def list_reviews(self, task_id: int) -> Sequence[TaskReview]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT review_id, task_id, reviewer_id, status, review_notes, created_at
                FROM task_reviews
                WHERE task_id=%s
                ORDER BY created_at ASC, review_id ASC
                """,
                (int(task_id),),
            )
            return [
                TaskReview(
                    review_id=int(r["review_id"]),
                    task_id=int(r["task_id"]),
                    reviewer_id=int(r["reviewer_id"]),
                    status=ReviewStatus(r["status"]),
                    review_notes=r.get("review_notes"),
                    created_at=r.get("created_at"),
                )
                for r in fetchall(cur)
            ]


class MySQLRecurrenceRunRepository(RecurrenceRunRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, run_date: date) -> Optional[RecurrenceRun]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT run_date, templates_found, instances_created, expired_tasks, ran_at
                FROM task_recurrence_runs
                WHERE run_date=%s
                """,
                (run_date,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return RecurrenceRun(
                run_date=r["run_date"],
                templates_found=int(r["templates_found"]),
                instances_created=int(r["instances_created"]),
                expired_tasks=int(r["expired_tasks"]),
                ran_at=r["ran_at"],
            )

    def record(self, run_date: date, result: RecurrenceResult, *, ran_at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO task_recurrence_runs(run_date, templates_found, instances_created, expired_tasks, ran_at)
                VALUES(%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    templates_found=VALUES(templates_found),
                    instances_created=instances_created + VALUES(instances_created),
                    expired_tasks=expired_tasks + VALUES(expired_tasks),
                    ran_at=VALUES(ran_at)
                """,
                (run_date, result.templates_found, result.instances_created, result.expired_tasks, ran_at),
            )


_COMMENT_SELECT = """
    SELECT comment_id, task_id, author_id, content, parent_comment_id, is_edited, created_at, updated_at
    FROM task_comments
"""


def _to_comment(r: dict) -> TaskComment:
    return TaskComment(
        comment_id=int(r["comment_id"]),
        task_id=int(r["task_id"]),
        author_id=int(r["author_id"]),
        content=r["content"],
        parent_comment_id=r.get("parent_comment_id"),
        is_edited=bool(r.get("is_edited")),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


class MySQLTaskCommentRepository(TaskCommentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, comment_id: int) -> Optional[TaskComment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_COMMENT_SELECT} WHERE comment_id=%s", (int(comment_id),))
            r = fetchone(cur)
            return _to_comment(r) if r else None

    def list_for_task(self, task_id: int) -> Sequence[TaskComment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_COMMENT_SELECT} WHERE task_id=%s ORDER BY created_at ASC, comment_id ASC", (int(task_id),))
            return [_to_comment(r) for r in fetchall(cur)]

    def add(self, comment: TaskComment) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO task_comments(task_id, author_id, content, parent_comment_id, created_at, updated_at)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(comment.task_id),
                    int(comment.author_id),
                    comment.content,
                    comment.parent_comment_id,
                    comment.created_at,
                    comment.updated_at,
                ),
            )
            return int(cur.lastrowid)

    def update_content(self, comment_id: int, content: str, *, updated_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE task_comments SET content=%s, is_edited=1, updated_at=%s WHERE comment_id=%s",
                (content, updated_at, int(comment_id)),
            )
            return cur.rowcount > 0

    def delete(self, comment_id: int) -> bool:
        # replies go with their parent through fk_comment_parent
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM task_comments WHERE comment_id=%s", (int(comment_id),))
            return cur.rowcount > 0

    def count_by_task(self, task_ids: Sequence[int]) -> dict[int, int]:
        if not task_ids:
            return {}
        clause, params = in_clause("task_id", [int(t) for t in task_ids])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT task_id, COUNT(*) AS cnt FROM task_comments WHERE {clause} GROUP BY task_id",
                tuple(params),
            )
            return {int(r["task_id"]): int(r["cnt"]) for r in fetchall(cur)}


class MySQLTaskSettingsRepository(TaskSettingsRepository):
    """Rows keyed by (setting_type, target_id); the global row uses target_id 0."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _key(user_id: Optional[int]) -> tuple[str, int]:
        return ("global", 0) if user_id is None else ("user", int(user_id))

    def get(self, *, user_id: Optional[int] = None) -> Optional[AutoApproveSettings]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT auto_approve_daily, auto_approve_cutoff_hours
                FROM task_settings
                WHERE setting_type=%s AND target_id=%s
                """,
                self._key(user_id),
            )
            r = fetchone(cur)
            if not r:
                return None
            return AutoApproveSettings(
                auto_approve_daily=bool(r["auto_approve_daily"]),
                cutoff_hours=int(r["auto_approve_cutoff_hours"]),
            )

    def save(self, settings: AutoApproveSettings, *, user_id: Optional[int] = None) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO task_settings(setting_type, target_id, auto_approve_daily, auto_approve_cutoff_hours)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    auto_approve_daily=VALUES(auto_approve_daily),
                    auto_approve_cutoff_hours=VALUES(auto_approve_cutoff_hours)
                """,
                (*self._key(user_id), 1 if settings.auto_approve_daily else 0, int(settings.cutoff_hours)),
            )

    def delete(self, *, user_id: Optional[int] = None) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM task_settings WHERE setting_type=%s AND target_id=%s", self._key(user_id))
            return cur.rowcount > 0
