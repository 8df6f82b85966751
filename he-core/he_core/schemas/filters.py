from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .entities import AwareDatetime


class TimeRange(str, Enum):
    TODAY = "Today"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    CUSTOM = "Custom"
    ALL = "All"


class FilterState(BaseModel):
    """
    Declarative filter for incident and task views.

    Values inside a dimension are OR-ed, dimensions are AND-ed. An empty set
    places no restriction on its dimension. Set members are kept as plain
    strings, so a value no entity can carry never matches anything.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    time_range: TimeRange = TimeRange.ALL
    custom_start_date: Optional[AwareDatetime] = None
    custom_end_date: Optional[AwareDatetime] = None
    areas: FrozenSet[str] = frozenset()
    severities: FrozenSet[str] = frozenset()
    departments: FrozenSet[str] = frozenset()
    statuses: FrozenSet[str] = frozenset()
    priorities: FrozenSet[str] = frozenset()

    @field_validator("areas", "severities", "departments", "statuses", "priorities", mode="before")
    @classmethod
    def _as_plain_strings(cls, value: Any):
        if value is None:
            return frozenset()
        if isinstance(value, (str, Enum)):
            value = [value]
        return frozenset(v.value if isinstance(v, Enum) else str(v) for v in value)

    def with_changes(self, **changes) -> "FilterState":
        """Partial update, validated like a fresh FilterState."""
        data = self.model_dump()
        data.update(changes)
        return FilterState.model_validate(data)

    @property
    def custom_bounds(self) -> Optional[tuple[datetime, datetime]]:
        if self.custom_start_date is None or self.custom_end_date is None:
            return None
        return self.custom_start_date, self.custom_end_date
