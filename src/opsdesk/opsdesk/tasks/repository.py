from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import EvidenceType, ReviewStatus, SubmissionType, TaskPriority, TaskStatus
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


class TaskTemplateRepository(Protocol):
    def get_by_id(self, template_id: int) -> Optional[TaskTemplate]:
        raise NotImplementedError

    def list_active_recurring(self, *, assigned_to: Optional[int] = None) -> Sequence[TaskTemplate]:
        raise NotImplementedError

    def list(self, *, active_only: bool = True, assigned_to: Optional[int] = None) -> Sequence[TaskTemplate]:
        """Templates ordered by title."""

        raise NotImplementedError

    def create(self, template: TaskTemplate) -> int:
        """Insert a template; ``template.template_id`` is ignored."""

        raise NotImplementedError

    def set_active(self, template_id: int, *, is_active: bool) -> bool:
        raise NotImplementedError

    def update(self, template: TaskTemplate) -> bool:
        """Overwrite every field but ``created_by`` and ``is_active``."""

        raise NotImplementedError


class TaskRepository(Protocol):
    def get_by_id(self, task_id: int) -> Optional[Task]:
        raise NotImplementedError

    def list(self, filters: TaskFilters) -> Sequence[Task]:
        raise NotImplementedError

    def create(self, task: NewTask) -> int:
        raise NotImplementedError

    def create_instance(self, task: NewTask) -> Optional[int]:
        """Insert a recurring instance; returns None when (template_id, instance_date) already exists."""

        raise NotImplementedError

    def expire_open_instances(self, *, before: date, assigned_to: Optional[int] = None) -> int:
        raise NotImplementedError

    def update_status(
        self,
        task_id: int,
        status: TaskStatus,
        *,
        auto_approved: Optional[bool] = None,
        submitted_at: Optional[datetime] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> bool:
        raise NotImplementedError

    def update_priority(self, task_id: int, priority: TaskPriority) -> bool:
        raise NotImplementedError

    def update_assignee(self, task_id: int, assigned_to: int) -> bool:
        raise NotImplementedError

    def delete(self, task_id: int) -> bool:
        raise NotImplementedError

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
        raise NotImplementedError

    def list_submissions(self, task_id: int) -> Sequence[TaskSubmission]:
        raise NotImplementedError

    def add_review(
        self,
        *,
        task_id: int,
        reviewer_id: int,
        status: ReviewStatus,
        review_notes: Optional[str] = None,
    ) -> int:
        raise NotImplementedError

    def list_reviews(self, task_id: int) -> Sequence[TaskReview]:
        raise NotImplementedError


class RecurrenceRunRepository(Protocol):
    def get(self, run_date: date) -> Optional[RecurrenceRun]:
        raise NotImplementedError

    def record(self, run_date: date, result: RecurrenceResult, *, ran_at: datetime) -> None:
        """Insert or overwrite the marker for ``run_date``."""

        raise NotImplementedError


class TaskCommentRepository(Protocol):
    def get_by_id(self, comment_id: int) -> Optional[TaskComment]:
        raise NotImplementedError

    def list_for_task(self, task_id: int) -> Sequence[TaskComment]:
        """All comments on a task, replies included, oldest first."""

        raise NotImplementedError

    def add(self, comment: TaskComment) -> int:
        raise NotImplementedError

    def update_content(self, comment_id: int, content: str, *, updated_at: datetime) -> bool:
        """Replace the text and flag the comment as edited."""

        raise NotImplementedError

    def delete(self, comment_id: int) -> bool:
        """Delete a comment together with its replies."""

        raise NotImplementedError

    def count_by_task(self, task_ids: Sequence[int]) -> dict[int, int]:
        """Comment counts keyed by task id; tasks without comments are absent."""

        raise NotImplementedError


class TaskSettingsRepository(Protocol):
    """Auto-approve overrides. ``user_id=None`` addresses the company-wide row."""

    def get(self, *, user_id: Optional[int] = None) -> Optional[AutoApproveSettings]:
        raise NotImplementedError

    def save(self, settings: AutoApproveSettings, *, user_id: Optional[int] = None) -> None:
        raise NotImplementedError

    def delete(self, *, user_id: Optional[int] = None) -> bool:
        raise NotImplementedError
