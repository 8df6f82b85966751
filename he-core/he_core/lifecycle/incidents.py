import logging

from ..entity_store.store import EntityKind, EntityStore
from ..exceptions import IncidentNotFoundError, PermissionDeniedError, ValidationError
from ..schemas.entities import Incident, IncidentStatus
from ..schemas.identity import Identity

logger = logging.getLogger("he-core.incident-status")


class IncidentStatusController:
    """
    Incidents are immutable apart from their status, and only supervisors may
    change it.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def preview_status(self, incident_id: str, status, identity: Identity) -> Incident:
        if not identity.is_supervisor:
            raise PermissionDeniedError(f"{identity.role} accounts cannot change incident status")
        try:
            status = IncidentStatus(status).value
        except ValueError:
            raise ValidationError(f"Unknown incident status: {status!r}") from None

        incident = self.store.get_incident(incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        return incident.model_copy(update={"status": status})

    def update_status(self, incident_id: str, status, identity: Identity) -> Incident:
        updated = self.preview_status(incident_id, status, identity)
        current = self.store.get_incident(incident_id)
        if updated.status == current.status:
            return current
        stored = self.store.commit_local(EntityKind.INCIDENT, updated)
        logger.info(f"Incident {incident_id}: {current.status} -> {stored.status} by {identity.id}")
        return stored
