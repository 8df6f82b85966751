import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from he_core.sync.push_service import EVENT_KINDS, PushEventService


class MockMsg:
    def __init__(self, subject, payload):
        self.subject = subject
        self.data = payload if isinstance(payload, bytes) else json.dumps(payload).encode()


@pytest.fixture
def nats():
    client = MagicMock()
    client.is_connected = True
    client.subscribe = AsyncMock(side_effect=lambda subject, handler: MagicMock(subject=subject))
    client.unsubscribe = AsyncMock()
    return client


@pytest.fixture
def service(loaded_store, nats):
    return PushEventService(loaded_store, client=nats, subject_prefix="hazardeye")


@pytest.mark.asyncio
async def test_subscribes_to_every_event(service, nats):
    await service.start()

    subjects = [call.args[0] for call in nats.subscribe.await_args_list]
    assert subjects == [f"hazardeye.{event}" for event in EVENT_KINDS]
    assert all(call.args[1] == service.handle_message for call in nats.subscribe.await_args_list)

    await service.stop()
    assert nats.unsubscribe.await_count == len(EVENT_KINDS)
    assert service._subscriptions == []


@pytest.mark.asyncio
async def test_start_without_connection_is_a_no_op(loaded_store):
    client = MagicMock()
    client.is_connected = False
    client.subscribe = AsyncMock()

    await PushEventService(loaded_store, client=client).start()

    client.subscribe.assert_not_awaited()


@pytest.mark.asyncio
async def test_task_update_applied(service, loaded_store):
    await service.handle_message(MockMsg("hazardeye.task.updated", {
        "id": "t1", "status": "InProgress", "description": "Pushed", "version": 1,
    }))

    task = loaded_store.get_task("t1")
    assert task.status == "In Progress"
    assert task.description == "Pushed"


@pytest.mark.asyncio
async def test_incident_created(service, loaded_store):
    await service.handle_message(MockMsg("hazardeye.incident.created", {
        "id": 77, "dateTime": "2026-03-15T06:00:00Z", "severity": "High",
    }))

    assert loaded_store.get_incident("77").severity == "High"


@pytest.mark.asyncio
async def test_pre_change_echo_dropped(service, loaded_store):
    dto = {"id": 8, "status": "Pending", "description": "Fix valve"}
    loaded_store.apply_patch("task", dto)
    loaded_store.commit_local("task", loaded_store.get_task("8").model_copy(update={"description": "Local edit"}))

    await service.handle_message(MockMsg("hazardeye.task.updated", dto))
    assert loaded_store.get_task("8").description == "Local edit"

    await service.handle_message(MockMsg("hazardeye.task.updated", {**dto, "status": "Completed"}))
    assert loaded_store.get_task("8").status == "Completed"


@pytest.mark.asyncio
async def test_stale_version_dropped(service, loaded_store):
    await service.handle_message(MockMsg("hazardeye.task.updated", {"id": "t1", "description": "Current", "version": 3}))
    await service.handle_message(MockMsg("hazardeye.task.updated", {"id": "t1", "description": "Old", "version": 2}))

    assert loaded_store.get_task("t1").description == "Current"


@pytest.mark.asyncio
async def test_undecodable_payload_ignored(service, loaded_store):
    before = loaded_store.tasks()

    await service.handle_message(MockMsg("hazardeye.task.updated", b"{not json"))

    assert loaded_store.tasks() == before


def test_unknown_event_and_non_object_payload(service):
    assert not service.handle_event("task.deleted", {"id": "t1"})
    assert not service.handle_event("task.updated", ["t1"])
