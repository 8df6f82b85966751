from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from .entities import UserRole

_SUPERVISOR_ROLE_NAMES = {"safetyofficer", "supervisor"}


class Identity(BaseModel):
    """The logged-in portal user that views are scoped to."""
    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    id: str
    name: str = ""
    role: UserRole = UserRole.EMPLOYEE
    department: str = "General"

    @classmethod
    def from_user_record(cls, record: Dict[str, Any]) -> "Identity":
        """
        Build an Identity from the login record the auth collaborator stores.
        SafetyOfficer and Supervisor accounts get the supervisor portal, anyone
        else is treated as an employee.
        """
        first, last = record.get("firstName"), record.get("lastName")
        if first and last:
            name = f"{first} {last}"
        else:
            name = record.get("name") or "Unknown"

        role_name = str(record.get("role") or "").lower()
        role = UserRole.SUPERVISOR if role_name in _SUPERVISOR_ROLE_NAMES else UserRole.EMPLOYEE

        return cls(
            id=str(record.get("id", "")),
            name=name,
            role=role,
            department=record.get("company") or record.get("department") or "General",
        )

    @property
    def is_supervisor(self) -> bool:
        return self.role == UserRole.SUPERVISOR
