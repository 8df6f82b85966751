import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

from ..schemas.entities import EntityModel, Incident, Task
from ..schemas.lookups import Location, User
from ..sync.mapper import incident_from_dto, location_from_dto, task_from_dto, user_from_dto

logger = logging.getLogger("he-core.entity-store")

# Client-created tasks carry this id prefix until the backend assigns a real one.
TEMP_ID_PREFIX = "tmp-"


class EntityKind(str, Enum):
    INCIDENT = "incident"
    TASK = "task"
    LOCATION = "location"
    USER = "user"


_MODELS = {
    EntityKind.INCIDENT: Incident,
    EntityKind.TASK: Task,
    EntityKind.LOCATION: Location,
    EntityKind.USER: User,
}

_MAPPERS = {
    EntityKind.INCIDENT: incident_from_dto,
    EntityKind.TASK: task_from_dto,
    EntityKind.LOCATION: location_from_dto,
    EntityKind.USER: user_from_dto,
}


@dataclass(frozen=True)
class StoreChange:
    kind: EntityKind
    action: str  # loaded, created, updated, removed
    entity_id: Optional[str] = None


Listener = Callable[[StoreChange], None]
Payload = Union[EntityModel, Dict[str, Any]]


def is_stale(current: EntityModel, incoming: EntityModel) -> bool:
    """
    True when `incoming` is older than `current`.
    Only server-issued stamps are compared: versions when both sides carry
    one, then updated_at when both carry one. Without stamps nothing is stale.
    """
    if current.version is not None and incoming.version is not None and incoming.version != current.version:
        return incoming.version < current.version
    if current.updated_at is not None and incoming.updated_at is not None:
        return incoming.updated_at < current.updated_at
    return False


_STAMPS = {"version", "updated_at"}


def same_content(a: EntityModel, b: EntityModel) -> bool:
    """Equal apart from the server stamps."""
    return a.model_dump(exclude=_STAMPS) == b.model_dump(exclude=_STAMPS)


class EntityStore:
    """
    Entity Store.
    Responsibility: hold the session's authoritative local copy of incidents,
    tasks, locations and users.

    Records are frozen pydantic models and every read returns a tuple snapshot,
    so callers cannot mutate stored collections. The store does no I/O.
    """

    def __init__(self):
        self._collections: Dict[EntityKind, Dict[str, EntityModel]] = {kind: {} for kind in EntityKind}
        self._listeners: List[Listener] = []
        # (kind, id) -> server copy held before the first unconfirmed local change
        self._pending: Dict[Tuple[EntityKind, str], EntityModel] = {}

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _ingest(self, kind: EntityKind, entity: Payload) -> Optional[EntityModel]:
        """Coerce a payload into the kind's model; None (and a log line) if malformed."""
        model = _MODELS[kind]
        try:
            if isinstance(entity, model):
                return entity
            if isinstance(entity, BaseModel):
                raise TypeError(f"expected {model.__name__}, got {type(entity).__name__}")
            if isinstance(entity, dict):
                return _MAPPERS[kind](entity)
            raise TypeError(f"unsupported payload type {type(entity).__name__}")
        except (ValidationError, ValueError, TypeError, KeyError) as e:
            entity_id = entity.get("id") if isinstance(entity, dict) else getattr(entity, "id", None)
            logger.warning(f"Rejected malformed {kind.value} payload (id={entity_id!r}): {e}")
            return None

    def load(self, kind: EntityKind, entities: Iterable[Payload], replace: bool = True) -> int:
        """
        Bulk load a collection. Within the batch the last record per id wins.
        With replace=True ids missing from the batch are dropped, except tasks
        still waiting for their server id. The batch is server state and
        replaces local changes; only a record whose server stamps are newer
        than the batch's copy is kept.
        Returns the number of records accepted from the batch.
        """
        kind = EntityKind(kind)
        batch: Dict[str, EntityModel] = {}
        for entity in entities:
            record = self._ingest(kind, entity)
            if record is not None:
                batch[record.id] = record

        current = self._collections[kind]
        merged: Dict[str, EntityModel] = {} if replace else dict(current)
        if replace:
            for entity_id, record in current.items():
                if entity_id.startswith(TEMP_ID_PREFIX):
                    merged[entity_id] = record

        for entity_id, record in batch.items():
            held = current.get(entity_id)
            if held is not None and is_stale(held, record):
                logger.debug(f"Bulk load kept newer {kind.value} {entity_id} (v{held.version})")
                merged[entity_id] = held
            else:
                merged[entity_id] = record
                self._pending.pop((kind, entity_id), None)

        for key in [key for key in self._pending if key[0] == kind and key[1] not in merged]:
            del self._pending[key]

        self._collections[kind] = merged
        logger.info(f"Loaded {len(batch)} {kind.value} records ({'replace' if replace else 'merge'})")
        self._notify(StoreChange(kind, "loaded"))
        return len(batch)

    def apply_patch(self, kind: EntityKind, entity: Payload, authoritative: bool = False) -> bool:
        """
        Insert or replace a single record.

        An existing record is replaced unless the incoming one is older by its
        server stamps, or is a late echo of the copy a pending local change
        was made on. Any other server copy supersedes the local change.
        `authoritative` (server-confirmed copy after a write) skips both
        checks. Tasks are replaced whole; their delay history and comments
        are never merged piecemeal. Returns False when the patch was rejected.
        """
        kind = EntityKind(kind)
        record = self._ingest(kind, entity)
        if record is None:
            return False

        collection = self._collections[kind]
        current = collection.get(record.id)
        if current is None:
            collection[record.id] = record
            self._notify(StoreChange(kind, "created", record.id))
            return True

        if not authoritative:
            if is_stale(current, record):
                logger.info(
                    f"Dropped stale {kind.value} patch for {record.id}: "
                    f"incoming v{record.version} older than held v{current.version}"
                )
                return False
            baseline = self._pending.get((kind, record.id))
            if baseline is not None and not is_stale(record, baseline) and same_content(baseline, record):
                logger.info(f"Dropped pre-change echo of {kind.value} {record.id}")
                return False

        self._pending.pop((kind, record.id), None)
        collection[record.id] = record
        self._notify(StoreChange(kind, "updated", record.id))
        return True

    def commit_local(self, kind: EntityKind, entity: EntityModel) -> EntityModel:
        """
        Store a locally mutated record. Server stamps are left alone; the copy
        held before the first unconfirmed change is remembered so that a late
        push of exactly that copy does not revert the change. Used by the
        lifecycle controllers; returns the record as stored.
        """
        kind = EntityKind(kind)
        collection = self._collections[kind]
        current = collection.get(entity.id)
        if current is not None:
            self._pending.setdefault((kind, entity.id), current)
        collection[entity.id] = entity
        self._notify(StoreChange(kind, "updated" if current is not None else "created", entity.id))
        return entity

    def has_pending(self, kind: EntityKind, entity_id: str) -> bool:
        """True while a local change has not been superseded by a server copy."""
        return (EntityKind(kind), entity_id) in self._pending

    def rekey(self, kind: EntityKind, old_id: str, entity: Payload) -> bool:
        """Replace the record held under `old_id` with `entity` under its own id."""
        kind = EntityKind(kind)
        record = self._ingest(kind, entity)
        if record is None:
            return False
        collection = self._collections[kind]
        self._pending.pop((kind, old_id), None)
        self._pending.pop((kind, record.id), None)
        if collection.pop(old_id, None) is not None:
            self._notify(StoreChange(kind, "removed", old_id))
        created = record.id not in collection
        collection[record.id] = record
        self._notify(StoreChange(kind, "created" if created else "updated", record.id))
        return True

    def remove(self, kind: EntityKind, entity_id: str) -> bool:
        kind = EntityKind(kind)
        self._pending.pop((kind, entity_id), None)
        if self._collections[kind].pop(entity_id, None) is None:
            return False
        self._notify(StoreChange(kind, "removed", entity_id))
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, kind: EntityKind, entity_id: str) -> Optional[EntityModel]:
        return self._collections[EntityKind(kind)].get(entity_id)

    def all(self, kind: EntityKind) -> Tuple[EntityModel, ...]:
        return tuple(self._collections[EntityKind(kind)].values())

    def version_of(self, kind: EntityKind, entity_id: str) -> Optional[int]:
        record = self.get(kind, entity_id)
        return record.version if record is not None else None

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._collections[EntityKind.TASK].get(task_id)

    def get_incident(self, incident_id: str) -> Optional[Incident]:
        return self._collections[EntityKind.INCIDENT].get(incident_id)

    def incidents(self) -> Tuple[Incident, ...]:
        return self.all(EntityKind.INCIDENT)

    def tasks(self) -> Tuple[Task, ...]:
        return self.all(EntityKind.TASK)

    def users(self) -> Tuple[User, ...]:
        return self.all(EntityKind.USER)

    def locations(self, active_only: bool = False, location_type: Optional[str] = None) -> Tuple[Location, ...]:
        return tuple(
            loc for loc in self._collections[EntityKind.LOCATION].values()
            if (not active_only or loc.active) and (location_type is None or loc.type == location_type)
        )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange):
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Store listener failed on {change}: {e}", exc_info=True)
