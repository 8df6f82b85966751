from he_core.schemas.filters import FilterState
from he_core.schemas.identity import Identity
from he_core.filtering.engine import filter_tasks
from he_core.visibility.scope import scope_incidents, scope_tasks


def test_employee_sees_only_assigned_tasks(loaded_store, employee):
    visible = scope_tasks(loaded_store.tasks(), employee)

    assert {t.id for t in visible} == {"t1", "t3"}


def test_supervisor_sees_every_task(loaded_store, supervisor):
    assert len(scope_tasks(loaded_store.tasks(), supervisor)) == 3


def test_unknown_role_sees_nothing(loaded_store):
    contractor = Identity.model_construct(id="c-1", name="Contractor", role="contractor", department="General")

    assert scope_tasks(loaded_store.tasks(), contractor) == []


def test_everyone_sees_every_incident(loaded_store, employee, supervisor):
    assert len(scope_incidents(loaded_store.incidents(), employee)) == 3
    assert len(scope_incidents(loaded_store.incidents(), supervisor)) == 3


def test_filters_cannot_widen_scope(loaded_store, employee):
    # t2 is in Cooling Tower and assigned to someone else
    filters = FilterState(areas={"Cooling Tower"})

    assert filter_tasks(scope_tasks(loaded_store.tasks(), employee), filters) == []


def test_identity_from_user_record():
    officer = Identity.from_user_record({"id": 4, "firstName": "Meera", "lastName": "Iyer", "role": "SafetyOfficer"})
    worker = Identity.from_user_record({"id": 5, "name": "Ravi", "role": "Technician", "company": "Civil"})

    assert officer.is_supervisor
    assert officer.name == "Meera Iyer"
    assert officer.id == "4"
    assert not worker.is_supervisor
    assert worker.role == "employee"
    assert worker.department == "Civil"
