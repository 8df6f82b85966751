from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from he_core.entity_store.store import EntityKind
from he_core.exceptions import DelayValidationError, PermissionDeniedError, SyncError
from he_core.lifecycle.controller import TaskLifecycleController
from he_core.lifecycle.transitions import TaskDraft
from he_core.sync.backend_client import BackendClient
from he_core.sync.service import SyncService


@pytest.fixture
def client():
    mock = MagicMock(spec=BackendClient)
    for name in (
        "open", "aclose", "fetch_incidents", "fetch_tasks", "fetch_users", "fetch_locations",
        "update_task_status", "add_task_comment", "create_task", "update_incident",
    ):
        setattr(mock, name, AsyncMock(return_value=None))
    mock.fetch_incidents.return_value = []
    mock.fetch_tasks.return_value = []
    mock.fetch_users.return_value = []
    mock.fetch_locations.return_value = []
    return mock


@pytest.fixture
def service(loaded_store, client, now):
    tasks = TaskLifecycleController(loaded_store, clock=lambda: now)
    return SyncService(loaded_store, client, tasks=tasks, refresh_interval=0)


@pytest.mark.asyncio
async def test_refresh_loads_every_collection(service, client):
    client.fetch_incidents.return_value = [{"id": 1, "dateTime": "2026-03-14T08:00:00Z"}]
    client.fetch_tasks.return_value = [{"id": 2, "description": "Clean spill"}]
    client.fetch_users.return_value = [{"id": 3, "name": "Asha"}]
    client.fetch_locations.return_value = [{"id": 4, "name": "Plant A"}]

    report = await service.refresh()

    assert all(error is None for error in report.values())
    assert [i.id for i in service.store.incidents()] == ["1"]
    assert [t.id for t in service.store.tasks()] == ["2"]
    assert [u.id for u in service.store.users()] == ["3"]
    assert [l.id for l in service.store.locations()] == ["4"]


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_collection(service, client):
    client.fetch_tasks.side_effect = SyncError("API Error 503: unavailable", status_code=503)
    client.fetch_incidents.return_value = [{"id": 9, "dateTime": "2026-03-14T08:00:00Z"}]

    report = await service.refresh()

    assert "503" in report[EntityKind.TASK]
    assert report[EntityKind.INCIDENT] is None
    assert {t.id for t in service.store.tasks()} == {"t1", "t2", "t3"}
    assert [i.id for i in service.store.incidents()] == ["9"]


@pytest.mark.asyncio
async def test_status_change_applied_after_backend_accepts(service, client, now):
    task = await service.persist_status_change("t1", "Delayed", "Parts on order", now + timedelta(days=2))

    client.update_task_status.assert_awaited_once_with("t1", "Delayed")
    assert task.status == "Delayed"
    assert service.store.get_task("t1").delay_reason == "Parts on order"


@pytest.mark.asyncio
async def test_later_server_update_accepted_after_status_change(service, client):
    service.store.load(EntityKind.TASK, [{"id": 7, "status": "Pending", "description": "Fix valve"}])

    task = await service.persist_status_change("7", "In Progress")
    assert task.status == "In Progress"

    # an echo of the copy the change was made on is ignored
    assert not service.store.apply_patch(EntityKind.TASK, {"id": 7, "status": "Pending", "description": "Fix valve"})
    assert service.store.apply_patch(EntityKind.TASK, {"id": 7, "status": "Completed", "description": "Valve replaced"})
    assert service.store.get_task("7").description == "Valve replaced"

    client.fetch_tasks.return_value = [{"id": 7, "status": "InProgress", "description": "Reassigned"}]
    await service.refresh()
    assert (service.store.get_task("7").status, service.store.get_task("7").description) == ("In Progress", "Reassigned")


@pytest.mark.asyncio
async def test_rejected_status_change_leaves_store_untouched(service, client):
    client.update_task_status.side_effect = SyncError("API Error 400: bad", status_code=400)
    before = service.store.get_task("t1")

    with pytest.raises(SyncError):
        await service.persist_status_change("t1", "Completed")

    assert service.store.get_task("t1") is before


@pytest.mark.asyncio
async def test_invalid_status_change_never_reaches_backend(service, client):
    with pytest.raises(DelayValidationError):
        await service.persist_status_change("t1", "Delayed", "", None)

    client.update_task_status.assert_not_awaited()


@pytest.mark.asyncio
async def test_completing_completed_task_skips_backend(service, client):
    await service.persist_status_change("t1", "Completed")
    await service.persist_status_change("t1", "Completed")

    assert client.update_task_status.await_count == 1


@pytest.mark.asyncio
async def test_server_copy_is_merged(service, client):
    client.update_task_status.return_value = {"id": "t1", "status": "InProgress", "description": "From server"}

    task = await service.persist_status_change("t1", "In Progress")

    assert task.status == "In Progress"
    assert task.description == "From server"


@pytest.mark.asyncio
async def test_persist_comment(service, client, employee):
    comment = await service.persist_comment("t1", employee, "Isolation done")

    args = client.add_task_comment.await_args.args
    assert args[0] == "t1"
    assert args[1] is comment
    assert [c.text for c in args[2]] == ["Isolation done"]
    assert service.store.get_task("t1").comments == (comment,)


@pytest.mark.asyncio
async def test_persist_new_task_swaps_temp_id(service, client, supervisor, now):
    client.create_task.return_value = {"id": 501, "description": "Install guard", "assignedToUserId": "emp-1",
                                       "priority": 3, "status": "Pending"}
    draft = TaskDraft(description="Install guard", assigned_to="emp-1", due_date=now + timedelta(days=3))

    task = await service.persist_new_task(draft, supervisor)

    payload = client.create_task.await_args.args[0]
    assert payload["assignedToUserId"] == "emp-1"
    assert task.id == "501"
    assert task.priority == "High"
    assert not any(t.id.startswith("tmp-") for t in service.store.tasks())


@pytest.mark.asyncio
async def test_failed_create_removes_temp_task(service, client, supervisor, now):
    client.create_task.side_effect = SyncError("API Error 500: boom", status_code=500)
    draft = TaskDraft(description="Install guard", assigned_to="emp-1", due_date=now + timedelta(days=3))

    with pytest.raises(SyncError):
        await service.persist_new_task(draft, supervisor)

    assert {t.id for t in service.store.tasks()} == {"t1", "t2", "t3"}


@pytest.mark.asyncio
async def test_persist_incident_status(service, client, supervisor, employee):
    with pytest.raises(PermissionDeniedError):
        await service.persist_incident_status("i1", "Resolved", employee)
    client.update_incident.assert_not_awaited()

    incident = await service.persist_incident_status("i1", "Resolved", supervisor)

    client.update_incident.assert_awaited_once_with("i1", {"status": "Resolved"})
    assert incident.status == "Resolved"


@pytest.mark.asyncio
async def test_start_and_stop(service, client):
    await service.start()
    await service.stop()

    client.open.assert_awaited_once()
    client.aclose.assert_awaited_once()
    client.fetch_tasks.assert_awaited_once()
