"""Authorization rules for care tasks.

Staff members only see and change tasks assigned to them; managers and admins
see and change everything. Customers have no access to the staff surface.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import CareTask, UserRole

TASK_OPERATOR_ROLES = frozenset({UserRole.STAFF, UserRole.MANAGER, UserRole.ADMIN})
PRIVILEGED_ROLES = frozenset({UserRole.MANAGER, UserRole.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity gateway."""

    id: str
    role: UserRole


def can_operate_tasks(actor: Actor) -> bool:
    return actor.role in TASK_OPERATOR_ROLES


def assignee_filter(actor: Actor) -> Optional[str]:
    """Return the user id listings must be restricted to, or None for no filter."""

    if actor.role in PRIVILEGED_ROLES:
        return None
    return actor.id


def can_mutate_task(actor: Actor, task: CareTask) -> bool:
    if actor.role in PRIVILEGED_ROLES:
        return True
    if actor.role is not UserRole.STAFF:
        return False
    staff = task.assigned_staff
    return staff is not None and staff.user_id == actor.id
