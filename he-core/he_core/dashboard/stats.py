"""
Dashboard counters for the supervisor and employee home screens.
All functions are pure and operate on already scoped/filtered sequences.
"""
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from ..config import settings
from ..filtering.ordering import by_due_date
from ..schemas.entities import Incident, IncidentStatus, Priority, Severity, Task, TaskStatus
from ..utils import ensure_aware


class TaskOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    open: int
    overdue: int
    completed: int
    high_priority: int
    due_soon: int
    due_soon_tasks: Tuple[Task, ...] = ()


class IncidentOverview(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    open: int
    high_severity: int
    pending_tasks: int


def is_overdue(task: Task, now: datetime) -> bool:
    return task.due_date is not None and not task.is_completed and task.due_date < ensure_aware(now)


def task_overview(tasks: Sequence[Task], now: datetime, due_soon_hours: int = None) -> TaskOverview:
    hours = settings.DUE_SOON_HOURS if due_soon_hours is None else due_soon_hours
    now = ensure_aware(now)
    horizon = now + timedelta(hours=hours)

    open_tasks = [t for t in tasks if not t.is_completed]
    due_soon = [t for t in open_tasks if t.due_date is not None and now <= t.due_date <= horizon]

    return TaskOverview(
        open=len(open_tasks),
        overdue=sum(1 for t in open_tasks if is_overdue(t, now)),
        completed=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
        high_priority=sum(1 for t in open_tasks if t.priority == Priority.HIGH),
        due_soon=len(due_soon),
        due_soon_tasks=tuple(by_due_date(due_soon)),
    )


def incident_overview(incidents: Sequence[Incident], tasks: Sequence[Task]) -> IncidentOverview:
    return IncidentOverview(
        total=len(incidents),
        open=sum(1 for i in incidents if i.status == IncidentStatus.OPEN),
        high_severity=sum(1 for i in incidents if i.severity == Severity.HIGH),
        pending_tasks=sum(1 for t in tasks if not t.is_completed),
    )


def incidents_by_area(incidents: Iterable[Incident]) -> List[Tuple[str, int]]:
    """(area, count) pairs, most incidents first; ties by area name."""
    counts = Counter(i.area or "Unknown" for i in incidents)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
