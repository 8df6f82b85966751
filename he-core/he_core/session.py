import logging
from datetime import datetime
from typing import List, Optional

from .dashboard import stats
from .entity_store.store import EntityStore
from .filtering.engine import filter_incidents, filter_tasks, search_incidents, search_tasks
from .filtering.ordering import prioritize_tasks
from .schemas.entities import Incident, Task, UserRole
from .schemas.filters import FilterState
from .schemas.identity import Identity
from .utils import local_now
from .visibility.scope import scope_incidents, scope_tasks

logger = logging.getLogger("he-core.session")


class PortalSession:
    """
    One logged-in portal view over a shared EntityStore.

    Holds the identity and the current filter selection. Every read scopes by
    identity first, then filters, then applies the free-text query.
    """

    def __init__(self, store: EntityStore, identity: Identity, filters: Optional[FilterState] = None):
        self.store = store
        self.identity = identity
        self.filters = filters or FilterState()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def update_filters(self, **changes) -> FilterState:
        self.filters = self.filters.with_changes(**changes)
        return self.filters

    def reset_filters(self) -> FilterState:
        self.filters = FilterState()
        return self.filters

    def switch_role(self, role) -> Identity:
        self.identity = self.identity.model_copy(update={"role": UserRole(role).value})
        logger.info(f"Session for {self.identity.id} switched to role {self.identity.role}")
        return self.identity

    def set_identity(self, identity: Identity):
        self.identity = identity

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_incidents(self) -> List[Incident]:
        return scope_incidents(self.store.incidents(), self.identity)

    def visible_tasks(self) -> List[Task]:
        return scope_tasks(self.store.tasks(), self.identity)

    def get_filtered_incidents(self, query: str = "", now: Optional[datetime] = None) -> List[Incident]:
        incidents = filter_incidents(self.visible_incidents(), self.filters, now=now)
        return search_incidents(incidents, query)

    def get_filtered_tasks(self, query: str = "", filters: Optional[FilterState] = None) -> List[Task]:
        tasks = filter_tasks(self.visible_tasks(), filters or self.filters)
        return search_tasks(tasks, query)

    def prioritized_open_tasks(self, limit: Optional[int] = None) -> List[Task]:
        """Visible, filtered, not yet completed tasks; most urgent first."""
        ranked = prioritize_tasks(t for t in self.get_filtered_tasks() if not t.is_completed)
        return ranked if limit is None else ranked[:limit]

    def task_overview(self, now: Optional[datetime] = None) -> stats.TaskOverview:
        return stats.task_overview(self.get_filtered_tasks(), now or local_now())

    def incident_overview(self) -> stats.IncidentOverview:
        return stats.incident_overview(self.visible_incidents(), self.visible_tasks())
