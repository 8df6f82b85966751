"""
Task state machine.

Pure functions: each takes a Task and returns the Task that results from the
requested change, or raises. Nothing here touches the entity store.

    Open <-> In Progress <-> Delayed   (any non-terminal state to any other)
    any non-terminal state -> Completed (terminal)

Delayed appends a {reason, date} entry to the delay history. Leaving Delayed
keeps the history; the mirrored delay_reason / delay_date always reflect the
newest entry.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    CommentValidationError,
    DelayValidationError,
    TaskDraftValidationError,
    TaskTransitionError,
    ValidationError,
)
from ..schemas.entities import AwareDatetime, Priority, Task, TaskComment, TaskDelayEntry, TaskStatus, UserRole
from ..utils import ensure_aware

TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED.value})

EDITABLE_FIELDS = frozenset({
    "description", "area", "plant", "due_date", "priority", "precautions",
    "plant_location_id", "area_location_id",
})


class TaskDraft(BaseModel):
    """Task as filled in on the assignment form, before it has an id."""
    model_config = ConfigDict(use_enum_values=True)

    description: str = ""
    assigned_to: str = ""
    assigned_to_name: str = ""
    due_date: Optional[AwareDatetime] = None
    priority: Priority = Priority.MEDIUM
    area: str = ""
    plant: str = ""
    department: Optional[str] = None
    precautions: str = "Refer to safety guidelines."
    incident_id: Optional[str] = None
    plant_location_id: Optional[int] = None
    area_location_id: Optional[int] = None


def normalize_status(status) -> str:
    try:
        return TaskStatus(status).value
    except ValueError:
        raise ValidationError(f"Unknown task status: {status!r}") from None


def validate_delay(reason: Optional[str], date: Optional[datetime]) -> Tuple[str, datetime]:
    reason = (reason or "").strip()
    if not reason:
        raise DelayValidationError("A delay reason is required")
    if date is None:
        raise DelayValidationError("A delay date is required")
    return reason, ensure_aware(date)


def apply_status(task: Task, status, reason: Optional[str] = None, date: Optional[datetime] = None,
                 now: Optional[datetime] = None) -> Task:
    """
    Task after moving to `status`.
    Completing a completed task returns it unchanged; any other change to a
    completed task raises TaskTransitionError.
    """
    status = normalize_status(status)

    if task.status in TERMINAL_STATUSES:
        if status == task.status:
            return task
        raise TaskTransitionError(task.id, task.status, status)

    if status == TaskStatus.COMPLETED:
        return task.model_copy(update={"status": status, "completed_at": now})

    if status == TaskStatus.DELAYED:
        reason, date = validate_delay(reason, date)
        entry = TaskDelayEntry(reason=reason, date=date)
        return task.model_copy(update={"status": status, "delay_history": task.delay_history + (entry,)})

    return task.model_copy(update={"status": status})


def build_comment(task: Task, comment_id: str, author_id: str, author_name: str, author_role,
                  content: str, now: datetime) -> TaskComment:
    """
    New comment for `task`. Its timestamp is kept strictly after the newest
    stored comment so the thread order is also chronological.
    """
    text = (content or "").strip()
    if not text:
        raise CommentValidationError("Comment text is required")
    try:
        role = UserRole(author_role).value
    except ValueError:
        raise CommentValidationError(f"Unknown author role: {author_role!r}") from None

    timestamp = ensure_aware(now)
    if task.comments and timestamp <= task.comments[-1].timestamp:
        timestamp = task.comments[-1].timestamp + timedelta(microseconds=1)

    return TaskComment(
        id=comment_id,
        task_id=task.id,
        user_id=author_id,
        user_name=author_name,
        user_role=role,
        text=text,
        timestamp=timestamp,
    )


def append_comment(task: Task, comment: TaskComment) -> Task:
    return task.model_copy(update={"comments": task.comments + (comment,)})


def apply_details(task: Task, changes: Dict[str, Any]) -> Task:
    """Task with edited form fields; status, history and comments cannot be edited here."""
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    data = task.model_dump()
    data.update(changes)
    try:
        return Task.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e


def task_from_draft(draft: TaskDraft, task_id: str, created_by: str, created_by_name: str,
                    now: datetime) -> Task:
    if not draft.description.strip():
        raise TaskDraftValidationError("A task description is required")
    if not draft.assigned_to:
        raise TaskDraftValidationError("A task must be assigned to someone")
    if draft.due_date is None:
        raise TaskDraftValidationError("A due date is required")

    return Task(
        id=task_id,
        created_by=created_by,
        created_by_name=created_by_name,
        created_at=now,
        status=TaskStatus.OPEN,
        **draft.model_dump(),
    )
