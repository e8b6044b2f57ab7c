"""Pydantic schemas for the care-tasks service."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import CareTaskStatus, CareTaskType, ReservationStatus, UserRole


class PublicUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    role: UserRole


class CatOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    breed: Optional[str] = None


class RoomTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user: PublicUser


class StaffOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    position: Optional[str] = None
    user: PublicUser


class TaskReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    status: ReservationStatus
    check_in: datetime
    check_out: datetime
    room_type: Optional[RoomTypeOut] = None
    customer: Optional[CustomerOut] = None


class CareTaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: CareTaskType
    status: CareTaskStatus
    notes: Optional[str]
    scheduled_at: Optional[datetime]
    completed_at: Optional[datetime]
    cat_id: Optional[str]
    reservation_id: Optional[str]
    assigned_staff_id: Optional[str]
    created_at: datetime
    updated_at: datetime


class CareTaskDetailOut(CareTaskOut):
    cat: Optional[CatOut] = None
    reservation: Optional[TaskReservationOut] = None
    assigned_staff: Optional[StaffOut] = None


class UpdateTaskStatus(BaseModel):
    status: CareTaskStatus
    notes: Optional[str] = None
    expected_status: Optional[CareTaskStatus] = Field(
        default=None,
        description="Reject the update with 409 unless the task is currently in this status.",
    )


# --- Reservation projection ---------------------------------------------------

class CatRef(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class RoomRef(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class CustomerRef(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class ReservationSnapshot(BaseModel):
    """Reservation as seen by the projector; dates are kept as raw strings."""

    id: str
    code: Optional[str] = None
    status: ReservationStatus
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    cats: List[CatRef] = []
    room_type: Optional[RoomRef] = None
    room: Optional[RoomRef] = None
    customer: Optional[CustomerRef] = None


class ReservationTask(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    reservation_id: str
    type: Literal["CHECKIN", "CHECKOUT"]
    scheduled_at: Optional[str]
    title: str
    detail: str


class TaskBoard(BaseModel):
    tasks: List[CareTaskDetailOut]
    reservation_tasks: List[ReservationTask]
