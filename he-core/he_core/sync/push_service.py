import json
import logging
from typing import Any, Dict, List, Optional

from ..config import settings
from ..entity_store.store import EntityKind, EntityStore
from ..messaging.nats_client import NATSClient, nats_client
from ..service_manager.base_service import BaseService

logger = logging.getLogger("he-core.push-events")

# Event suffix -> collection it patches
EVENT_KINDS: Dict[str, EntityKind] = {
    "incident.created": EntityKind.INCIDENT,
    "incident.updated": EntityKind.INCIDENT,
    "task.created": EntityKind.TASK,
    "task.updated": EntityKind.TASK,
}


class PushEventService(BaseService):
    """
    Push Event Service.
    Responsibility: apply the backend's created/updated notifications to the
    entity store as single-record patches.

    Each payload is a full record. The store drops stale versions and late
    echoes of a record that was changed locally.
    A created event for a record already held is treated as an update.
    """

    def __init__(self, store: EntityStore, client: Optional[NATSClient] = None,
                 subject_prefix: Optional[str] = None):
        super().__init__("PushEventService")
        self.store = store
        self.client = client or nats_client
        self.subject_prefix = subject_prefix or settings.PUSH_SUBJECT_PREFIX
        self._subscriptions: List[Any] = []

    def subject_for(self, event: str) -> str:
        return f"{self.subject_prefix}.{event}"

    async def start(self):
        if not self.client.is_connected:
            logger.warning("NATS not connected, push events disabled until restart")
            return
        for event in EVENT_KINDS:
            subject = self.subject_for(event)
            try:
                self._subscriptions.append(await self.client.subscribe(subject, self.handle_message))
            except Exception as e:
                logger.error(f"Failed to subscribe to {subject}: {e}")
        logger.info("PushEventService started.")

    async def stop(self):
        for sub in self._subscriptions:
            await self.client.unsubscribe(sub)
        self._subscriptions = []
        logger.info("PushEventService stopped.")

    async def handle_message(self, msg):
        event = msg.subject[len(self.subject_prefix) + 1:] if msg.subject.startswith(self.subject_prefix) else msg.subject
        try:
            payload = json.loads(msg.data.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Discarded undecodable push on {msg.subject}: {e}")
            return
        self.handle_event(event, payload)

    def handle_event(self, event: str, payload: Any) -> bool:
        """Apply one push notification; True when the store accepted it."""
        kind = EVENT_KINDS.get(event)
        if kind is None:
            logger.warning(f"Ignoring unknown push event: {event}")
            return False
        if not isinstance(payload, dict):
            logger.error(f"Push event {event} carried a non-object payload")
            return False

        applied = self.store.apply_patch(kind, payload)
        if applied:
            logger.debug(f"Applied {event} for {kind.value} {payload.get('id')}")
        return applied
