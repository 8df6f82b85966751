"""
Error taxonomy for the portal core.

Validation errors are raised before any store mutation. Stale or malformed
patches are not exceptions: the entity store logs and drops them.
"""


class HazardEyeError(Exception):
    """Base class for all portal core errors."""


class ValidationError(HazardEyeError):
    """Input rejected before the store was touched."""


class DelayValidationError(ValidationError):
    pass


class CommentValidationError(ValidationError):
    pass


class TaskDraftValidationError(ValidationError):
    pass


class TaskNotFoundError(HazardEyeError):
    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class IncidentNotFoundError(HazardEyeError):
    def __init__(self, incident_id: str):
        super().__init__(f"Incident not found: {incident_id}")
        self.incident_id = incident_id


class TaskTransitionError(HazardEyeError):
    """A status change the lifecycle rules do not allow."""

    def __init__(self, task_id: str, current: str, requested: str):
        super().__init__(f"Task {task_id}: cannot move from '{current}' to '{requested}'")
        self.task_id = task_id
        self.current = current
        self.requested = requested


class PermissionDeniedError(HazardEyeError):
    pass


class SyncError(HazardEyeError):
    """Backend fetch or write failed; the store keeps its last-known state."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
