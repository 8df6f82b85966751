"""
Visibility scope rules: which entities an identity may observe.

Scoping is applied before any user-chosen filter, so no filter combination
can widen what a role is allowed to see.
"""
from typing import Callable, Dict, Iterable, List

from ..schemas.entities import Incident, Task, UserRole
from ..schemas.identity import Identity

TaskScopeRule = Callable[[Iterable[Task], Identity], List[Task]]


def _assigned_only(tasks: Iterable[Task], identity: Identity) -> List[Task]:
    return [task for task in tasks if task.assigned_to == identity.id]


def _everything(tasks: Iterable[Task], identity: Identity) -> List[Task]:
    return list(tasks)


TASK_SCOPE_RULES: Dict[str, TaskScopeRule] = {
    UserRole.EMPLOYEE.value: _assigned_only,
    UserRole.SUPERVISOR.value: _everything,
}


def scope_tasks(tasks: Iterable[Task], identity: Identity) -> List[Task]:
    """Employees see the tasks assigned to them; supervisors see all. Unknown roles see none."""
    rule = TASK_SCOPE_RULES.get(identity.role)
    if rule is None:
        return []
    return rule(tasks, identity)


def scope_incidents(incidents: Iterable[Incident], identity: Identity) -> List[Incident]:
    # Every role with portal access sees every incident.
    return list(incidents)
