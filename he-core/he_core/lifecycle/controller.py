import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from ..entity_store.store import TEMP_ID_PREFIX, EntityKind, EntityStore
from ..exceptions import TaskNotFoundError, TaskTransitionError
from ..schemas.entities import Task, TaskComment, TaskStatus
from ..schemas.identity import Identity
from ..utils import utcnow
from . import transitions
from .transitions import TaskDraft

logger = logging.getLogger("he-core.task-lifecycle")


class TaskLifecycleController:
    """
    Task Lifecycle Controller.
    Responsibility: the only writer of task status, delay history and comments.

    Direct single-task calls raise TaskNotFoundError for unknown ids and
    TaskTransitionError for illegal moves. Batch calls skip those tasks.
    """

    def __init__(self, store: EntityStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def _require(self, task_id: str) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _commit(self, task: Task) -> Task:
        return self.store.commit_local(EntityKind.TASK, task)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def preview_status(self, task_id: str, status, reason: Optional[str] = None,
                       date: Optional[datetime] = None) -> Task:
        """Validate a status change and return the resulting task without storing it."""
        return transitions.apply_status(self._require(task_id), status, reason, date, now=self.clock())

    def change_status(self, task_id: str, status, reason: Optional[str] = None,
                      date: Optional[datetime] = None) -> Task:
        current = self._require(task_id)
        updated = transitions.apply_status(current, status, reason, date, now=self.clock())
        if updated is current:
            logger.debug(f"Task {task_id} already {current.status}; nothing to do")
            return current
        stored = self._commit(updated)
        logger.info(f"Task {task_id}: {current.status} -> {stored.status}")
        return stored

    def mark_completed(self, task_id: str) -> Task:
        """Idempotent: completing a completed task is a silent no-op."""
        return self.change_status(task_id, TaskStatus.COMPLETED)

    def mark_delayed(self, task_id: str, reason: str, date: datetime) -> Task:
        return self.change_status(task_id, TaskStatus.DELAYED, reason, date)

    def complete_many(self, task_ids: Iterable[str]) -> List[str]:
        """Complete every listed task that exists and is still open; returns those ids."""
        completed = []
        for task_id in task_ids:
            task = self.store.get_task(task_id)
            if task is None or task.is_completed:
                logger.debug(f"Batch completion skipped task {task_id}")
                continue
            self._commit(transitions.apply_status(task, TaskStatus.COMPLETED, now=self.clock()))
            completed.append(task_id)
        return completed

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def build_comment(self, task_id: str, author_id: str, author_name: str, author_role,
                      content: str) -> TaskComment:
        task = self._require(task_id)
        return transitions.build_comment(
            task, f"comment-{uuid.uuid4().hex}", author_id, author_name, author_role, content, self.clock(),
        )

    def commit_comment(self, task_id: str, comment: TaskComment) -> Task:
        return self._commit(transitions.append_comment(self._require(task_id), comment))

    def add_comment(self, task_id: str, author_id: str, author_name: str, author_role,
                    content: str) -> TaskComment:
        """Append a comment; the task's status is left alone."""
        comment = self.build_comment(task_id, author_id, author_name, author_role, content)
        self.commit_comment(task_id, comment)
        logger.info(f"Comment {comment.id} added to task {task_id} by {author_id}")
        return comment

    # ------------------------------------------------------------------
    # Create / edit / delete
    # ------------------------------------------------------------------

    def create_task(self, draft: TaskDraft, creator: Identity) -> Task:
        """Store a client-side task under a temporary id until the backend confirms it."""
        task = transitions.task_from_draft(
            draft, f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}", creator.id, creator.name, self.clock(),
        )
        stored = self._commit(task)
        logger.info(f"Created task {stored.id} for {stored.assigned_to}")
        return stored

    def confirm_created(self, temp_id: str, server_task) -> bool:
        """Swap a temporary task for the backend's persisted copy."""
        return self.store.rekey(EntityKind.TASK, temp_id, server_task)

    def update_details(self, task_id: str, **changes) -> Task:
        current = self._require(task_id)
        if current.is_completed:
            raise TaskTransitionError(task_id, current.status, "edit")
        return self._commit(transitions.apply_details(current, changes))

    def delete_task(self, task_id: str) -> bool:
        return self.store.remove(EntityKind.TASK, task_id)
