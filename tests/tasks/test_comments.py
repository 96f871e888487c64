from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from opsdesk.core.enums import EvidenceType, Role, TaskPriority, TaskStatus, TaskType
from opsdesk.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from opsdesk.tasks.model import Task, TaskComment
from opsdesk.tasks.service import TaskCommentService

ASSIGNEE, REVIEWER, OUTSIDER, MANAGER = 5, 6, 7, 1


class InMemoryComments:
    def __init__(self):
        self.comments: dict[int, TaskComment] = {}

    def get_by_id(self, comment_id):
        return self.comments.get(comment_id)

    def list_for_task(self, task_id):
        return sorted(
            (c for c in self.comments.values() if c.task_id == task_id),
            key=lambda c: (c.created_at, c.comment_id),
        )

    def add(self, comment: TaskComment) -> int:
        new_id = len(self.comments) + 1
        self.comments[new_id] = replace(comment, comment_id=new_id)
        return new_id

    def update_content(self, comment_id, content, *, updated_at) -> bool:
        if comment_id not in self.comments:
            return False
        self.comments[comment_id] = replace(
            self.comments[comment_id], content=content, is_edited=True, updated_at=updated_at
        )
        return True

    def delete(self, comment_id) -> bool:
        if self.comments.pop(comment_id, None) is None:
            return False
        for cid in [c.comment_id for c in self.comments.values() if c.parent_comment_id == comment_id]:
            del self.comments[cid]
        return True

    def count_by_task(self, task_ids):
        counts: dict[int, int] = {}
        for c in self.comments.values():
            if c.task_id in task_ids:
                counts[c.task_id] = counts.get(c.task_id, 0) + 1
        return counts


class InMemoryTasks:
    def __init__(self, *tasks: Task):
        self.tasks = {t.task_id: t for t in tasks}

    def get_by_id(self, task_id):
        return self.tasks.get(task_id)


def _task(task_id: int) -> Task:
    return Task(
        task_id=task_id,
        title=f"Task {task_id}",
        task_type=TaskType.ONE_OFF,
        status=TaskStatus.IN_PROGRESS,
        priority=TaskPriority.MEDIUM,
        evidence_required=EvidenceType.NONE,
        assigned_to=ASSIGNEE,
        reviewer_id=REVIEWER,
    )


@pytest.fixture
def setup():
    store = InMemoryComments()
    svc = TaskCommentService(store, InMemoryTasks(_task(1), _task(2)))
    return svc, store


def _add(svc, now, *, task_id=1, author_id=ASSIGNEE, content="Done?", **kwargs):
    return svc.add(task_id, author_id=author_id, privileged=False, content=content, now=now, **kwargs)


def test_comments_are_threaded(setup, fixed_now):
    svc, _ = setup
    first = _add(svc, fixed_now, content="Shelf A is empty")
    reply = _add(svc, fixed_now + timedelta(minutes=1), author_id=REVIEWER, content="Restock it", parent_comment_id=first)
    # replying to a reply stays in the first thread
    _add(svc, fixed_now + timedelta(minutes=2), content="On it", parent_comment_id=reply)
    second = _add(svc, fixed_now + timedelta(minutes=3), content="Shelf B too")

    threads = svc.thread(1, user_id=ASSIGNEE, privileged=False)

    assert [t.comment.comment_id for t in threads] == [first, second]
    assert [r.content for r in threads[0].replies] == ["Restock it", "On it"]
    assert all(r.parent_comment_id == first for r in threads[0].replies)
    assert threads[1].replies == ()


def test_content_is_trimmed_and_required(setup, fixed_now):
    svc, store = setup

    comment_id = _add(svc, fixed_now, content="  counted twice  ")

    assert store.comments[comment_id].content == "counted twice"
    with pytest.raises(ValidationError, match="Comment is required"):
        _add(svc, fixed_now, content="   ")
    with pytest.raises(ValidationError, match="at most"):
        _add(svc, fixed_now, content="x" * 2001)


def test_only_people_on_the_task_can_comment(setup, fixed_now):
    svc, _ = setup

    with pytest.raises(AuthorizationError):
        _add(svc, fixed_now, author_id=OUTSIDER)
    with pytest.raises(AuthorizationError):
        svc.thread(1, user_id=OUTSIDER, privileged=False)
    with pytest.raises(NotFoundError):
        _add(svc, fixed_now, task_id=99)

    assert svc.add(1, author_id=MANAGER, privileged=True, content="Checked", now=fixed_now) == 1


def test_reply_must_stay_on_the_same_task(setup, fixed_now):
    svc, _ = setup
    other = _add(svc, fixed_now, task_id=2)

    with pytest.raises(ValidationError, match="same task"):
        _add(svc, fixed_now, parent_comment_id=other)
    with pytest.raises(NotFoundError):
        _add(svc, fixed_now, parent_comment_id=42)


def test_only_the_author_edits(setup, fixed_now):
    svc, store = setup
    comment_id = _add(svc, fixed_now)

    with pytest.raises(AuthorizationError):
        svc.edit(comment_id, user_id=REVIEWER, content="Hijack")

    later = fixed_now + timedelta(hours=1)
    svc.edit(comment_id, user_id=ASSIGNEE, content=" Done now ", now=later)
    edited = store.comments[comment_id]
    assert edited.content == "Done now"
    assert edited.is_edited
    assert edited.updated_at == later
    assert edited.created_at == fixed_now


def test_delete_by_author_or_manager_removes_replies(setup, fixed_now):
    svc, store = setup
    parent = _add(svc, fixed_now)
    _add(svc, fixed_now, author_id=REVIEWER, parent_comment_id=parent)
    lone = _add(svc, fixed_now, author_id=REVIEWER)

    with pytest.raises(AuthorizationError):
        svc.delete(parent, user_id=REVIEWER, role=Role.EMPLOYEE)

    svc.delete(parent, user_id=ASSIGNEE, role=Role.EMPLOYEE)
    svc.delete(lone, user_id=MANAGER, role=Role.MANAGER)
    assert store.comments == {}
    with pytest.raises(NotFoundError):
        svc.delete(parent, user_id=ASSIGNEE, role=Role.EMPLOYEE)


def test_counts_fill_in_zero(setup, fixed_now):
    svc, _ = setup
    _add(svc, fixed_now)
    _add(svc, fixed_now)
    _add(svc, fixed_now, task_id=2)

    assert svc.counts([1, 2, 3, 1]) == {1: 2, 2: 1, 3: 0}
    assert svc.counts([]) == {}


def test_comment_timestamps_default_to_now(setup):
    svc, store = setup

    comment_id = svc.add(1, author_id=ASSIGNEE, privileged=False, content="Hi")

    assert isinstance(store.comments[comment_id].created_at, datetime)
    assert store.comments[comment_id].created_at == store.comments[comment_id].updated_at
