from typing import Optional, Tuple

from .entities import EntityModel, UserRole


class Location(EntityModel):
    """Plant / unit / area lookup row used by the incident and task forms."""
    name: str
    latitude: float = 0.0
    longitude: float = 0.0
    active: bool = True
    description: Optional[str] = None
    type: Optional[str] = None  # Plant, Unit, Area, Other
    parent_location_id: Optional[str] = None
    parent_location_name: Optional[str] = None
    polygon_coordinates: Optional[Tuple[Tuple[float, float], ...]] = None


class User(EntityModel):
    name: str
    email: str = ""
    role: str = UserRole.EMPLOYEE.value
    department: str = "General"
    employee_id: Optional[str] = None
