"""
Filter Predicate Engine.

Narrows an incident or task collection to the entities matching a FilterState.
Each populated dimension becomes one clause; clauses are AND-ed in a fixed
order and the allowed values inside a clause are OR-ed. The engine never
reorders its input.
"""
import calendar
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence, TypeVar

from ..schemas.entities import Incident, Task
from ..schemas.filters import FilterState, TimeRange
from ..utils import local_now

logger = logging.getLogger("he-core.filtering")

T = TypeVar("T")
Clause = Callable[[Any], bool]

INCIDENT_SEARCH_FIELDS = ("description", "area", "plant", "department", "severity")
TASK_SEARCH_FIELDS = ("description", "area", "plant", "assigned_to_name")


def subtract_calendar_month(moment: datetime) -> datetime:
    """Same wall-clock time one calendar month earlier, day clamped to the month's length."""
    year, month = (moment.year - 1, 12) if moment.month == 1 else (moment.year, moment.month - 1)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def time_window_start(time_range: str, now: datetime) -> Optional[datetime]:
    """Lower bound of a relative time range, or None when the range is not relative."""
    if time_range == TimeRange.TODAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == TimeRange.WEEKLY:
        return now - timedelta(days=7)
    if time_range == TimeRange.MONTHLY:
        return subtract_calendar_month(now)
    return None


def _time_clause(filters: FilterState, now: datetime) -> Optional[Clause]:
    if filters.time_range == TimeRange.ALL:
        return None

    if filters.time_range == TimeRange.CUSTOM:
        bounds = filters.custom_bounds
        if bounds is None:
            # Half-open custom ranges impose no restriction.
            return None
        start, end = bounds
        return lambda incident: start <= incident.captured_at <= end

    start = time_window_start(filters.time_range, now)
    logger.debug(f"Time range {filters.time_range} starts at {start.isoformat()}")
    return lambda incident: incident.captured_at >= start


def _membership_clause(attribute: str, allowed: FrozenSet[str]) -> Optional[Clause]:
    if not allowed:
        return None

    def clause(entity) -> bool:
        value = getattr(entity, attribute, None)
        return value is not None and str(value) in allowed

    return clause


def _apply(entities: Iterable[T], clauses: Sequence[Optional[Clause]]) -> List[T]:
    active = [clause for clause in clauses if clause is not None]
    return [entity for entity in entities if all(clause(entity) for clause in active)]


def filter_incidents(incidents: Iterable[Incident], filters: FilterState, now: Optional[datetime] = None) -> List[Incident]:
    """Time range, area, severity, department and status clauses, in that order."""
    if now is None:
        now = local_now()
    elif now.tzinfo is None:
        now = now.astimezone()

    return _apply(incidents, [
        _time_clause(filters, now),
        _membership_clause("area", filters.areas),
        _membership_clause("severity", filters.severities),
        _membership_clause("department", filters.departments),
        _membership_clause("status", filters.statuses),
    ])


def filter_tasks(tasks: Iterable[Task], filters: FilterState) -> List[Task]:
    """Area, priority, department and status clauses. Tasks have no time or severity clause."""
    return _apply(tasks, [
        _membership_clause("area", filters.areas),
        _membership_clause("priority", filters.priorities),
        _membership_clause("department", filters.departments),
        _membership_clause("status", filters.statuses),
    ])


def matches_query(entity: Any, query: str, fields: Sequence[str]) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    for field in fields:
        value = getattr(entity, field, None)
        if value and q in str(value).lower():
            return True
    return False


def search(entities: Iterable[T], query: Optional[str], fields: Sequence[str]) -> List[T]:
    """Case-insensitive substring search; an entity matches if any field contains the query."""
    if not query or not query.strip():
        return list(entities)
    return [entity for entity in entities if matches_query(entity, query, fields)]


def search_incidents(incidents: Iterable[Incident], query: Optional[str]) -> List[Incident]:
    return search(incidents, query, INCIDENT_SEARCH_FIELDS)


def search_tasks(tasks: Iterable[Task], query: Optional[str]) -> List[Task]:
    return search(tasks, query, TASK_SEARCH_FIELDS)
