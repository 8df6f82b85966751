"""
Backend DTO -> domain model mapping.

This is the store's ingestion boundary: every raw payload (bulk fetch or push
event) goes through here. It normalises the backend's enum spellings, decodes
comment arrays that arrive as JSON strings and performs the one-time
migration of legacy single-value delay fields into a delay history.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..schemas.entities import Incident, Task, TaskComment, TaskDelayEntry, UserRole
from ..schemas.lookups import Location, User

logger = logging.getLogger("he-core.mapper")

DEFAULT_INCIDENT_IMAGE = "https://via.placeholder.com/400x300?text=No+Image+Available"

_TASK_STATUS_ALIASES = {
    "open": "Open",
    "pending": "Open",
    "assigned": "Open",
    "overdue": "Open",
    "inprogress": "In Progress",
    "in progress": "In Progress",
    "completed": "Completed",
    "delayed": "Delayed",
}

_INCIDENT_STATUS_ALIASES = {
    "open": "Open",
    "pending": "Open",
    "assigned": "Open",
    "inprogress": "In Progress",
    "in progress": "In Progress",
    "resolved": "Resolved",
    "closed": "Closed",
    "rejected": "Closed",
}

# Outbound: portal task status -> backend TaskStatus name
_BACKEND_TASK_STATUS = {
    "Open": "Pending",
    "In Progress": "InProgress",
    "Completed": "Completed",
    "Delayed": "Overdue",
}

_SEVERITY_ALIASES = {
    "critical": "High",
    "high": "High",
    "medium": "Medium",
    "low": "Low",
}


def _pick(dto: Dict[str, Any], *keys: str, default=None):
    """First non-empty value among camelCase / snake_case spellings of a field."""
    for key in keys:
        value = dto.get(key)
        if value is not None and value != "":
            return value
    return default


def _id_str(value) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def _alias(value, table: Dict[str, str], fallback: str) -> str:
    if value is None:
        return fallback
    return table.get(str(value).strip().lower(), str(value))


def map_priority(value) -> str:
    """Backend priority is numeric (3+ High, 2 Medium, else Low); names pass through."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value >= 3:
            return "High"
        if value == 2:
            return "Medium"
        return "Low"
    if value is None or value == "":
        return "Medium"
    return str(value).capitalize()


def map_category_to_department(category: Optional[str]) -> str:
    category = category or ""
    if "Fire" in category or "Smoke" in category:
        return "Fire & Safety"
    if "Equip" in category or "Machine" in category:
        return "Mechanical"
    if "Spill" in category or "Leak" in category:
        return "Environmental"
    return "General"


def parse_comments(raw, task_id: str) -> List[TaskComment]:
    """
    Deserialize a task's comment list.
    The backend may send a JSON-encoded string of {text, timestamp, ...} objects.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        raw = json.loads(raw)

    comments = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            logger.warning(f"Skipped non-object comment {index} of task {task_id}")
            continue
        role = str(_pick(item, "userRole", "user_role", default=UserRole.EMPLOYEE.value)).lower()
        if role not in (UserRole.SUPERVISOR.value, UserRole.EMPLOYEE.value):
            role = UserRole.EMPLOYEE.value
        try:
            comments.append(TaskComment(
                id=str(_pick(item, "id", default=f"{task_id}-comment-{index}")),
                task_id=task_id,
                user_id=str(_pick(item, "userId", "user_id", default="")),
                user_name=str(_pick(item, "userName", "user_name", default="")),
                user_role=role,
                text=str(_pick(item, "text", "content", default="")),
                timestamp=_pick(item, "timestamp", "createdAt", "created_at"),
            ))
        except ValidationError as e:
            # one bad comment must not cost the whole task
            logger.warning(f"Skipped malformed comment {index} of task {task_id}: {e.error_count()} error(s)")
    return comments


def migrate_delay_history(dto: Dict[str, Any]) -> List[TaskDelayEntry]:
    """
    Delay history of a task payload. Payloads written before the history
    existed only carry delayReason/delayDate; those become a single entry.
    """
    history = _pick(dto, "delayHistory", "delay_history", default=[])
    if history:
        return [
            TaskDelayEntry(reason=entry["reason"], date=entry["date"])
            for entry in history
        ]

    reason = _pick(dto, "delayReason", "delay_reason")
    date = _pick(dto, "delayDate", "delay_date")
    if reason and date:
        logger.debug(f"Migrating legacy delay fields of task {dto.get('id')} into history")
        return [TaskDelayEntry(reason=reason, date=date)]
    return []


def incident_from_dto(dto: Dict[str, Any]) -> Incident:
    media = dto.get("mediaUris") or []
    department = _pick(dto, "department")
    if department is None:
        department = map_category_to_department(dto.get("category"))

    return Incident(
        id=_id_str(dto.get("id")),
        captured_at=_pick(dto, "capturedAt", "captured_at", "dateTime"),
        area=_pick(dto, "areaLocationName", "area", default=""),
        plant=_pick(dto, "plantLocationName", "plant", default=""),
        plant_location_id=_pick(dto, "plantLocationId", "plant_location_id"),
        area_location_id=_pick(dto, "areaLocationId", "area_location_id"),
        department=department,
        severity=_alias(dto.get("severity"), _SEVERITY_ALIASES, "Low"),
        status=_alias(dto.get("status"), _INCIDENT_STATUS_ALIASES, "Open"),
        description=_pick(
            dto, "note", "description", "category",
            default=f"Incident detected by {dto.get('deviceId', 'unknown device')}",
        ),
        advisory=dto.get("advisory"),
        image_url=media[0] if media else _pick(dto, "imageUrl", "image_url", default=DEFAULT_INCIDENT_IMAGE),
        version=_pick(dto, "version"),
        updated_at=_pick(dto, "updatedAt", "updated_at"),
    )


def task_from_dto(dto: Dict[str, Any]) -> Task:
    task_id = _id_str(dto.get("id"))
    department = _pick(dto, "departmentName", "department")
    delay_history = tuple(migrate_delay_history(dto))
    status = _alias(dto.get("status"), _TASK_STATUS_ALIASES, "Open")
    # Delayed goes out as Overdue; it comes back as Delayed only with a history to mirror
    if delay_history and str(dto.get("status", "")).strip().lower() == "overdue":
        status = "Delayed"

    return Task(
        id=task_id,
        incident_id=_id_str(_pick(dto, "incidentId", "incident_id")),
        description=_pick(dto, "description", "title", default=""),
        area=_pick(dto, "area", "areaLocationName", "departmentName", default=""),
        plant=_pick(dto, "plant", "plantLocationName", default="General"),
        plant_location_id=_pick(dto, "plantLocationId", "plant_location_id"),
        area_location_id=_pick(dto, "areaLocationId", "area_location_id"),
        department=department,
        due_date=_pick(dto, "dueDate", "due_date"),
        priority=map_priority(dto.get("priority")),
        status=status,
        precautions=_pick(dto, "precautions", default="Refer to safety guidelines."),
        assigned_to=str(_pick(dto, "assignedToUserId", "assignedTo", "assigned_to", default="")),
        assigned_to_name=_pick(dto, "assignedToName", "assigned_to_name", default=""),
        created_by=str(_pick(dto, "createdByUserId", "createdBy", "created_by", default="0")),
        created_by_name=_pick(dto, "createdByName", "created_by_name", default="System"),
        created_at=_pick(dto, "createdAt", "created_at", "updatedAt", "updated_at"),
        completed_at=_pick(dto, "completedAt", "completed_at"),
        delay_history=delay_history,
        comments=tuple(parse_comments(dto.get("comments"), task_id or "")),
        version=_pick(dto, "version"),
        updated_at=_pick(dto, "updatedAt", "updated_at"),
    )


def location_from_dto(dto: Dict[str, Any]) -> Location:
    polygon = dto.get("polygonCoordinates")
    if isinstance(polygon, str):
        polygon = json.loads(polygon)
    return Location(
        id=_id_str(dto.get("id")),
        name=dto.get("name", ""),
        latitude=dto.get("latitude") or 0.0,
        longitude=dto.get("longitude") or 0.0,
        active=dto.get("isActive", dto.get("active", True)),
        description=dto.get("description"),
        type=dto.get("type"),
        parent_location_id=_id_str(_pick(dto, "parentId", "parentLocationId")),
        parent_location_name=_pick(dto, "parentName", "parentLocationName"),
        polygon_coordinates=polygon,
    )


def user_from_dto(dto: Dict[str, Any]) -> User:
    first, last = dto.get("firstName"), dto.get("lastName")
    name = f"{first} {last}" if first and last else dto.get("name", "")
    return User(
        id=_id_str(dto.get("id")),
        name=name,
        email=dto.get("email", ""),
        role=str(dto.get("role", UserRole.EMPLOYEE.value)).lower(),
        department=_pick(dto, "company", "department", default="General"),
        employee_id=_id_str(dto.get("employeeId")),
    )


def task_status_payload(status: str) -> str:
    """
    Body of the status update call: the backend's own status name as a bare
    JSON string. The backend has no Delayed state; a delay is sent as Overdue
    and its reason and date stay in the local delay history.
    """
    try:
        return _BACKEND_TASK_STATUS[status]
    except KeyError:
        raise ValueError(f"No backend status for task status {status!r}") from None


def comments_payload(comments) -> str:
    """Comments are persisted as a JSON-encoded array on the task row."""
    return json.dumps([
        {
            "id": c.id,
            "userId": c.user_id,
            "userName": c.user_name,
            "userRole": c.user_role,
            "text": c.text,
            "timestamp": c.timestamp.isoformat(),
        }
        for c in comments
    ])
