from datetime import datetime, timedelta, timezone

import pytest

from he_core.entity_store.store import EntityKind, EntityStore
from he_core.schemas.entities import Incident, Task
from he_core.schemas.identity import Identity

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_incident():
    def _make(incident_id: str, **fields) -> Incident:
        data = {
            "id": incident_id,
            "captured_at": NOW - timedelta(hours=1),
            "area": "Boiler House",
            "plant": "Plant A",
            "severity": "Medium",
            "status": "Open",
            "description": f"Incident {incident_id}",
        }
        data.update(fields)
        return Incident(**data)
    return _make


@pytest.fixture
def make_task():
    def _make(task_id: str, **fields) -> Task:
        data = {
            "id": task_id,
            "description": f"Task {task_id}",
            "area": "Boiler House",
            "plant": "Plant A",
            "assigned_to": "emp-1",
            "assigned_to_name": "Asha Rao",
            "due_date": NOW + timedelta(days=3),
            "created_at": NOW - timedelta(days=1),
        }
        data.update(fields)
        return Task(**data)
    return _make


@pytest.fixture
def supervisor():
    return Identity(id="sup-1", name="Sam Supervisor", role="supervisor")


@pytest.fixture
def employee():
    return Identity(id="emp-1", name="Asha Rao", role="employee")


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def loaded_store(store, make_incident, make_task):
    store.load(EntityKind.INCIDENT, [
        make_incident("i1", area="Boiler House", severity="High"),
        make_incident("i2", area="Cooling Tower", severity="Low", status="Resolved"),
        make_incident("i3", area="Boiler House", severity="Medium", captured_at=NOW - timedelta(days=20)),
    ])
    store.load(EntityKind.TASK, [
        make_task("t1", priority="High"),
        make_task("t2", assigned_to="emp-2", assigned_to_name="Ravi Kumar", area="Cooling Tower"),
        make_task("t3", priority="Low", due_date=NOW - timedelta(days=1)),
    ])
    return store
