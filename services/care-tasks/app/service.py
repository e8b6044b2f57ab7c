from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .config import TASK_LIST_LIMIT
from .models import (
    CareTask,
    CareTaskEvent,
    CareTaskStatus,
    Customer,
    Reservation,
    ReservationCat,
    Staff,
)
from .policy import Actor, assignee_filter, can_mutate_task
from .reservation_tasks import PROJECTABLE_STATUSES

logger = logging.getLogger("care_tasks.service")


class TaskNotFound(Exception):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__("Task not found")


class TaskAccessDenied(Exception):
    def __init__(self, task_id: str, actor_id: str) -> None:
        self.task_id = task_id
        self.actor_id = actor_id
        super().__init__("This task is assigned to another staff member")


class InvalidStatusTransition(Exception):
    def __init__(self, current: CareTaskStatus, new: CareTaskStatus) -> None:
        self.current = current
        self.new = new
        super().__init__(f"Cannot transition task from {current.value} to {new.value}")


class StaleTaskStatus(Exception):
    def __init__(self, expected: CareTaskStatus, actual: CareTaskStatus) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Task status is {actual.value}, expected {expected.value}")


# Only checked when transition enforcement is switched on.
ALLOWED_TRANSITIONS: dict[CareTaskStatus, set[CareTaskStatus]] = {
    CareTaskStatus.OPEN: {CareTaskStatus.IN_PROGRESS, CareTaskStatus.CANCELLED},
    CareTaskStatus.IN_PROGRESS: {CareTaskStatus.DONE, CareTaskStatus.CANCELLED},
    CareTaskStatus.DONE: set(),
    CareTaskStatus.CANCELLED: set(),
}


def is_allowed_transition(current: CareTaskStatus, new: CareTaskStatus) -> bool:
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, set())


async def list_tasks(db: AsyncSession, actor: Actor) -> List[CareTask]:
    stmt = select(CareTask).options(
        selectinload(CareTask.cat),
        selectinload(CareTask.reservation).selectinload(Reservation.room_type),
        selectinload(CareTask.reservation).selectinload(Reservation.customer).selectinload(Customer.user),
        selectinload(CareTask.assigned_staff).selectinload(Staff.user),
    )
    user_id = assignee_filter(actor)
    if user_id is not None:
        stmt = stmt.join(CareTask.assigned_staff).where(Staff.user_id == user_id)
    stmt = stmt.order_by(
        CareTask.scheduled_at.asc().nulls_last(),
        CareTask.created_at.asc(),
        CareTask.id.asc(),
    ).limit(TASK_LIST_LIMIT)
    res = await db.execute(stmt)
    return list(res.scalars())


async def update_task_status(
    db: AsyncSession,
    task_id: str,
    actor: Actor,
    new_status: CareTaskStatus,
    notes: Optional[str] = None,
    *,
    expected_status: Optional[CareTaskStatus] = None,
    enforce_transitions: bool = False,
) -> CareTask:
    res = await db.execute(
        select(CareTask)
        .options(selectinload(CareTask.assigned_staff))
        .where(CareTask.id == task_id)
        .with_for_update()
    )
    task = res.scalar_one_or_none()
    if task is None:
        logger.info("Task %s not found (actor=%s)", task_id, actor.id)
        raise TaskNotFound(task_id)

    if not can_mutate_task(actor, task):
        logger.warning("Actor %s (%s) denied update of task %s", actor.id, actor.role.value, task_id)
        raise TaskAccessDenied(task_id, actor.id)

    previous = task.status
    if expected_status is not None and previous != expected_status:
        raise StaleTaskStatus(expected_status, previous)

    if enforce_transitions and not is_allowed_transition(previous, new_status):
        raise InvalidStatusTransition(previous, new_status)

    task.status = new_status
    if notes is not None:
        task.notes = notes
    if new_status == CareTaskStatus.DONE:
        task.completed_at = datetime.now(timezone.utc)

    db.add(
        CareTaskEvent(
            task_id=task_id,
            code="STATUS_CHANGED",
            payload={"from": previous.value, "to": new_status.value, "actor_id": actor.id},
        )
    )

    await db.commit()
    await db.refresh(task)
    logger.info("Task %s moved %s -> %s by %s", task_id, previous.value, new_status.value, actor.id)
    return task


async def list_projectable_reservations(db: AsyncSession) -> List[Reservation]:
    """Reservations that may still owe a check-in or check-out."""

    stmt = (
        select(Reservation)
        .options(
            selectinload(Reservation.cats).selectinload(ReservationCat.cat),
            selectinload(Reservation.room_type),
            selectinload(Reservation.room),
            selectinload(Reservation.customer).selectinload(Customer.user),
        )
        .where(Reservation.status.in_(list(PROJECTABLE_STATUSES)))
        .order_by(Reservation.check_in.asc(), Reservation.id.asc())
    )
    res = await db.execute(stmt)
    return list(res.scalars())
