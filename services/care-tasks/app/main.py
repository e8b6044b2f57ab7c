"""FastAPI application exposing the staff care-task API."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, TypeVar

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from . import service
from .config import get_log_level, transitions_enforced
from .db import SessionLocal, init_db
from .models import UserRole
from .policy import Actor, can_operate_tasks
from .reservation_tasks import project_reservation_tasks, snapshot_from_model
from .schemas import CareTaskDetailOut, CareTaskOut, ReservationTask, TaskBoard, UpdateTaskStatus
from .service import InvalidStatusTransition, StaleTaskStatus, TaskAccessDenied, TaskNotFound

logger = logging.getLogger("care_tasks")
logging.basicConfig(level=get_log_level())

app = FastAPI(title="Care Tasks", version="0.1.0")

TaskModel = TypeVar("TaskModel", bound=CareTaskOut)

_TASK_TIMESTAMPS = ("scheduled_at", "completed_at", "created_at", "updated_at")


async def get_db():
    async with SessionLocal() as session:
        yield session


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """Build the caller from identity headers set by the auth gateway."""

    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    try:
        role = UserRole(x_user_role.strip().upper())
    except ValueError:
        raise HTTPException(status_code=403, detail="Insufficient permissions") from None
    actor = Actor(id=x_user_id.strip(), role=role)
    if not can_operate_tasks(actor):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    return actor


@app.on_event("startup")
async def on_startup() -> None:
    await init_db()


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id", "").strip()
    request_id = incoming or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    logger.info(
        "%s %s -> %s request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        request_id,
    )
    return response


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


def _ensure_timezone(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if getattr(dt, "tzinfo", None) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _to_response_model(task: object, model: type[TaskModel]) -> TaskModel:
    out = model.model_validate(task)
    return out.model_copy(update={field: _ensure_timezone(getattr(out, field)) for field in _TASK_TIMESTAMPS})


def _handle_service_error(exc: Exception) -> HTTPException:
    """Map service errors onto HTTP status codes the dashboard can tell apart."""

    if isinstance(exc, TaskNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TaskAccessDenied):
        return HTTPException(status_code=403, detail=str(exc))
    # 409 Conflict for stale or disallowed transitions
    return HTTPException(status_code=409, detail=str(exc))


async def _change_status(db: AsyncSession, task_id: str, actor: Actor, payload: UpdateTaskStatus) -> CareTaskOut:
    try:
        task = await service.update_task_status(
            db,
            task_id,
            actor,
            payload.status,
            payload.notes,
            expected_status=payload.expected_status,
            enforce_transitions=transitions_enforced(),
        )
    except (TaskNotFound, TaskAccessDenied, InvalidStatusTransition, StaleTaskStatus) as exc:
        raise _handle_service_error(exc) from exc
    return _to_response_model(task, CareTaskOut)


async def _load_task_list(db: AsyncSession, actor: Actor) -> List[CareTaskDetailOut]:
    tasks = await service.list_tasks(db, actor)
    return [_to_response_model(t, CareTaskDetailOut) for t in tasks]


async def _load_reservation_tasks(db: AsyncSession) -> List[ReservationTask]:
    reservations = await service.list_projectable_reservations(db)
    return project_reservation_tasks(snapshot_from_model(r) for r in reservations)


@app.get("/staff/tasks", response_model=List[CareTaskDetailOut])
async def get_tasks(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    return await _load_task_list(db, actor)


@app.patch("/staff/tasks/{task_id}/status", response_model=CareTaskOut)
async def update_status(
    task_id: str,
    payload: UpdateTaskStatus,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await _change_status(db, task_id, actor, payload)


@app.get("/staff/reservation-tasks", response_model=List[ReservationTask])
async def get_reservation_tasks(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    return await _load_reservation_tasks(db)


# Persisted tasks and reservation reminders in one payload for the staff board
@app.get("/staff/board", response_model=TaskBoard)
async def get_board(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)):
    return TaskBoard(
        tasks=await _load_task_list(db, actor),
        reservation_tasks=await _load_reservation_tasks(db),
    )
