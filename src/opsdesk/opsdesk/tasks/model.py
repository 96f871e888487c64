from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from ..core.enums import EvidenceType, ReviewStatus, SubmissionType, TaskPriority, TaskStatus, TaskType


@dataclass(frozen=True)
class TaskTemplate:
    """Recurring task definition; expanded into one dated Task per occurrence."""

    template_id: int
    title: str
    task_type: TaskType
    assigned_to: int
    start_date: date
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    evidence_required: EvidenceType = EvidenceType.NONE
    reviewer_id: Optional[int] = None
    due_time: Optional[time] = None
    weekdays: tuple[int, ...] = ()
    day_of_month: Optional[int] = None
    end_date: Optional[date] = None
    is_active: bool = True
    created_by: Optional[int] = None


@dataclass(frozen=True)
class Task:
    task_id: int
    title: str
    task_type: TaskType
    status: TaskStatus
    priority: TaskPriority
    evidence_required: EvidenceType
    assigned_to: int
    description: Optional[str] = None
    due_date: Optional[date] = None
    due_datetime: Optional[datetime] = None
    template_id: Optional[int] = None
    is_recurring_instance: bool = False
    instance_date: Optional[date] = None
    assigned_by: Optional[int] = None
    reviewer_id: Optional[int] = None
    auto_approved: bool = False
    tags: tuple[str, ...] = ()
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewTask:
    """Fields needed to insert a task (one-off or recurring instance)."""

    title: str
    task_type: TaskType
    priority: TaskPriority
    evidence_required: EvidenceType
    assigned_to: int
    description: Optional[str] = None
    due_date: Optional[date] = None
    due_datetime: Optional[datetime] = None
    template_id: Optional[int] = None
    instance_date: Optional[date] = None
    assigned_by: Optional[int] = None
    reviewer_id: Optional[int] = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class TaskSubmission:
    submission_id: int
    task_id: int
    submission_type: SubmissionType
    submitted_by: int
    evidence_type: Optional[EvidenceType] = None
    file_path: Optional[str] = None
    link_url: Optional[str] = None
    notes: Optional[str] = None
    checklist_data: Optional[list] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TaskReview:
    review_id: int
    task_id: int
    reviewer_id: int
    status: ReviewStatus
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TaskFilters:
    assigned_to: Optional[int] = None
    status: Optional[TaskStatus] = None
    task_type: Optional[TaskType] = None
    priority: Optional[TaskPriority] = None
    due_from: Optional[date] = None
    due_to: Optional[date] = None
    recurring_only: bool = False


@dataclass(frozen=True)
class RecurrenceResult:
    templates_found: int
    instances_created: int
    expired_tasks: int
    skipped: bool = False
    created_ids: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RecurrenceRun:
    run_date: date
    templates_found: int
    instances_created: int
    expired_tasks: int
    ran_at: datetime


@dataclass(frozen=True)
class TaskComment:
    comment_id: int
    task_id: int
    author_id: int
    content: str
    parent_comment_id: Optional[int] = None
    is_edited: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class CommentThread:
    """A top-level comment and its replies, oldest first."""

    comment: TaskComment
    replies: tuple[TaskComment, ...] = ()


@dataclass(frozen=True)
class AutoApproveSettings:
    auto_approve_daily: bool
    cutoff_hours: int
