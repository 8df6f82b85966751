import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..config import settings
from ..entity_store.store import EntityKind, EntityStore
from ..exceptions import SyncError, TaskNotFoundError
from ..lifecycle.controller import TaskLifecycleController
from ..lifecycle.incidents import IncidentStatusController
from ..lifecycle.transitions import TaskDraft
from ..schemas.entities import Incident, Task, TaskComment
from ..schemas.identity import Identity
from ..service_manager.base_service import BaseService
from .backend_client import BackendClient

logger = logging.getLogger("he-core.sync")


class SyncService(BaseService):
    """
    Backend Sync Service.
    Responsibility: keep the entity store in step with the REST backend.

    Bulk refreshes replace each collection independently. Writes are
    confirmed, not optimistic: the change is validated locally first, sent to
    the backend, and only applied to the store once the backend accepted it.
    A rejected write raises SyncError and leaves the store untouched.
    """

    def __init__(self, store: EntityStore, client: BackendClient,
                 tasks: Optional[TaskLifecycleController] = None,
                 incidents: Optional[IncidentStatusController] = None,
                 refresh_interval: Optional[int] = None):
        super().__init__("SyncService")
        self.store = store
        self.client = client
        self.tasks = tasks or TaskLifecycleController(store)
        self.incidents = incidents or IncidentStatusController(store)
        self.refresh_interval = settings.REFRESH_INTERVAL if refresh_interval is None else refresh_interval
        self._running = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

    async def start(self):
        self._running = True
        await self.client.open()
        await self.refresh()
        if self.refresh_interval > 0:
            self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info(f"SyncService started. Refresh interval: {self.refresh_interval or 'disabled'}")

    async def stop(self):
        self._running = False
        if self._refresh_task:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None
        await self.client.aclose()
        logger.info("SyncService stopped.")

    async def _refresh_loop(self):
        while self._running:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Periodic refresh failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Bulk load
    # ------------------------------------------------------------------

    async def refresh(self) -> Dict[EntityKind, Optional[str]]:
        """
        Fetch every collection and load it into the store.
        Returns kind -> error message (None on success). A collection whose
        fetch failed keeps its previous contents.
        """
        fetchers = {
            EntityKind.INCIDENT: self.client.fetch_incidents,
            EntityKind.TASK: self.client.fetch_tasks,
            EntityKind.USER: self.client.fetch_users,
            EntityKind.LOCATION: self.client.fetch_locations,
        }
        results = await asyncio.gather(*(fetch() for fetch in fetchers.values()), return_exceptions=True)

        report: Dict[EntityKind, Optional[str]] = {}
        for kind, result in zip(fetchers, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to fetch {kind.value} collection: {result}")
                report[kind] = str(result)
                continue
            self.store.load(kind, result)
            report[kind] = None
        return report

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _merge_server_copy(self, kind: EntityKind, entity_id: str, response: Any):
        if isinstance(response, dict) and str(response.get("id")) == entity_id:
            self.store.apply_patch(kind, response, authoritative=True)

    async def persist_status_change(self, task_id: str, status, reason: Optional[str] = None,
                                    date: Optional[datetime] = None) -> Task:
        async with self._write_lock:
            current = self.store.get_task(task_id)
            preview = self.tasks.preview_status(task_id, status, reason, date)
            if preview is current:
                return current

            response = await self.client.update_task_status(task_id, preview.status)
            try:
                self.tasks.change_status(task_id, status, reason, date)
            except TaskNotFoundError:
                logger.warning(f"Task {task_id} left the store while its status update was in flight")
            self._merge_server_copy(EntityKind.TASK, task_id, response)
            return self.store.get_task(task_id) or preview

    async def persist_comment(self, task_id: str, author: Identity, content: str) -> TaskComment:
        async with self._write_lock:
            comment = self.tasks.build_comment(task_id, author.id, author.name, author.role, content)
            thread = list(self.store.get_task(task_id).comments) + [comment]

            response = await self.client.add_task_comment(task_id, comment, thread)
            self.tasks.commit_comment(task_id, comment)
            self._merge_server_copy(EntityKind.TASK, task_id, response)
            logger.info(f"Comment {comment.id} persisted on task {task_id}")
            return comment

    async def persist_new_task(self, draft: TaskDraft, creator: Identity) -> Task:
        """
        Create a task. It is held under a temporary id while the backend call
        is in flight and swapped for the persisted copy afterwards; a failed
        call removes it again.
        """
        async with self._write_lock:
            local = self.tasks.create_task(draft, creator)
            payload = {
                "incidentId": int(local.incident_id) if local.incident_id and local.incident_id.isdigit()
                else local.incident_id,
                "assignedToUserId": local.assigned_to,
                "description": local.description,
                "dueDate": local.due_date.isoformat() if local.due_date else None,
                "priority": local.priority,
                "area": local.area,
                "plant": local.plant,
                "department": local.department,
                "precautions": local.precautions,
                "plantLocationId": local.plant_location_id,
                "areaLocationId": local.area_location_id,
            }
            try:
                response = await self.client.create_task(payload)
            except SyncError:
                self.tasks.delete_task(local.id)
                raise

            if isinstance(response, dict) and response.get("id") is not None:
                if self.tasks.confirm_created(local.id, response):
                    return self.store.get_task(str(response["id"]))
                logger.warning(f"Backend returned an unreadable copy of task {local.id}; keeping local copy")
            return self.store.get_task(local.id) or local

    async def persist_incident_status(self, incident_id: str, status, identity: Identity) -> Incident:
        async with self._write_lock:
            preview = self.incidents.preview_status(incident_id, status, identity)
            current = self.store.get_incident(incident_id)
            if preview.status == current.status:
                return current

            response = await self.client.update_incident(incident_id, {"status": preview.status})
            self.incidents.update_status(incident_id, status, identity)
            self._merge_server_copy(EntityKind.INCIDENT, incident_id, response)
            return self.store.get_incident(incident_id)
