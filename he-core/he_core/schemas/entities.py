from datetime import datetime
from enum import Enum
from typing import Annotated, Optional, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, model_validator

from ..utils import ensure_aware, utcnow

AwareDatetime = Annotated[datetime, AfterValidator(ensure_aware)]


class Severity(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class IncidentStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class TaskStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DELAYED = "Delayed"


class Department(str, Enum):
    ELECTRICAL = "Electrical"
    MECHANICAL = "Mechanical"
    CIVIL = "Civil"
    FIRE_AND_SAFETY = "Fire & Safety"
    ENVIRONMENTAL = "Environmental"
    GENERAL = "General"


class UserRole(str, Enum):
    SUPERVISOR = "supervisor"
    EMPLOYEE = "employee"


class EntityModel(BaseModel):
    """
    Common base for everything held in the entity store.
    Stored records are frozen; changes produce a new copy via model_copy().
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    id: str = Field(min_length=1)
    version: Optional[int] = None  # server-issued; None when the backend sends none
    updated_at: Optional[AwareDatetime] = None


class Incident(EntityModel):
    """
    Incident Model.
    Immutable apart from status, which only an authorized role may change.
    """
    captured_at: AwareDatetime
    area: str = ""
    plant: str = ""
    department: Department = Department.GENERAL
    severity: Severity = Severity.LOW
    status: IncidentStatus = IncidentStatus.OPEN
    description: str = ""
    advisory: Optional[str] = None
    image_url: Optional[str] = None
    plant_location_id: Optional[int] = None
    area_location_id: Optional[int] = None


class TaskDelayEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    date: AwareDatetime


class TaskComment(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str
    task_id: str
    user_id: str
    user_name: str
    user_role: UserRole
    text: str
    timestamp: AwareDatetime


class Task(EntityModel):
    """
    Task Model.

    delay_history and comments are append-only tuples owned by the lifecycle
    controller. delay_reason / delay_date always mirror the newest delay entry.
    """
    incident_id: Optional[str] = None
    description: str = ""
    area: str = ""
    plant: str = ""
    department: Optional[str] = None  # owning department name as sent by the backend
    due_date: Optional[AwareDatetime] = None
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.OPEN
    precautions: str = "Refer to safety guidelines."
    assigned_to: str = ""
    assigned_to_name: str = ""
    created_by: str = ""
    created_by_name: str = ""
    created_at: Optional[AwareDatetime] = Field(default_factory=utcnow)
    completed_at: Optional[AwareDatetime] = None
    plant_location_id: Optional[int] = None
    area_location_id: Optional[int] = None
    delay_history: Tuple[TaskDelayEntry, ...] = ()
    comments: Tuple[TaskComment, ...] = ()

    @model_validator(mode="after")
    def _delayed_needs_history(self):
        if self.status == TaskStatus.DELAYED and not self.delay_history:
            raise ValueError("a Delayed task must carry at least one delay history entry")
        return self

    @computed_field
    @property
    def delay_reason(self) -> Optional[str]:
        return self.delay_history[-1].reason if self.delay_history else None

    @computed_field
    @property
    def delay_date(self) -> Optional[datetime]:
        return self.delay_history[-1].date if self.delay_history else None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED
