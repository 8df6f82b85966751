"""
Explicit comparators for list views. The filter engine never sorts; callers
pick one of these.
"""
from datetime import datetime, timezone
from typing import Iterable, List

from ..schemas.entities import Task, TaskComment, TaskDelayEntry

PRIORITY_WEIGHT = {"High": 3, "Medium": 2, "Low": 1}

# Tasks without a due date sort after every dated task.
_NO_DUE_DATE = datetime.max.replace(tzinfo=timezone.utc)
# Tasks the backend sent without a creation time sort last in newest-first order.
_NO_CREATED_AT = datetime.min.replace(tzinfo=timezone.utc)


def _due(task: Task) -> datetime:
    return task.due_date or _NO_DUE_DATE


def prioritize_tasks(tasks: Iterable[Task]) -> List[Task]:
    """High before Medium before Low; ties broken by the earliest due date."""
    return sorted(tasks, key=lambda t: (-PRIORITY_WEIGHT.get(t.priority, 0), _due(t)))


def by_due_date(tasks: Iterable[Task]) -> List[Task]:
    return sorted(tasks, key=_due)


def newest_first(tasks: Iterable[Task]) -> List[Task]:
    return sorted(tasks, key=lambda t: t.created_at or _NO_CREATED_AT, reverse=True)


def comments_newest_first(comments: Iterable[TaskComment]) -> List[TaskComment]:
    """Display order for a task's comment thread; the stored order is untouched."""
    return sorted(comments, key=lambda c: c.timestamp, reverse=True)


def delay_history_newest_first(history: Iterable[TaskDelayEntry]) -> List[TaskDelayEntry]:
    return sorted(history, key=lambda entry: entry.date, reverse=True)
