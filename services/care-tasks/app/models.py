"""SQLAlchemy models for the care-tasks service.

Only ``CareTask`` and ``CareTaskEvent`` are written by this service. The other
tables belong to the wider hotel backend and are read here to enrich task
listings and to project reservation reminders.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .db import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    CUSTOMER = "CUSTOMER"


class CareTaskType(str, enum.Enum):
    FEEDING = "FEEDING"
    CLEANING = "CLEANING"
    MEDICATION = "MEDICATION"
    PLAYTIME = "PLAYTIME"
    CHECKIN = "CHECKIN"
    CHECKOUT = "CHECKOUT"
    NOTE = "NOTE"


class CareTaskStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole, name="user_role"), nullable=False)


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    position: Mapped[str | None] = mapped_column(String(120))

    user: Mapped[User] = relationship()


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(64))

    user: Mapped[User] = relationship()


class Cat(Base):
    __tablename__ = "cats"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    breed: Mapped[str | None] = mapped_column(String(120))


class RoomType(Base):
    __tablename__ = "room_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    room_type_id: Mapped[str | None] = mapped_column(ForeignKey("room_types.id"))

    room_type: Mapped[RoomType | None] = relationship()


class Reservation(Base):
    """Booking snapshot; written elsewhere, read-only here."""

    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status"), nullable=False, index=True
    )
    check_in: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_out: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id"))
    room_type_id: Mapped[str | None] = mapped_column(ForeignKey("room_types.id"))
    room_id: Mapped[str | None] = mapped_column(ForeignKey("rooms.id"))

    customer: Mapped[Customer | None] = relationship()
    room_type: Mapped[RoomType | None] = relationship()
    room: Mapped[Room | None] = relationship()
    cats: Mapped[list["ReservationCat"]] = relationship(
        back_populates="reservation", cascade="all, delete-orphan", order_by="ReservationCat.position"
    )


class ReservationCat(Base):
    __tablename__ = "reservation_cats"

    reservation_id: Mapped[str] = mapped_column(
        ForeignKey("reservations.id", ondelete="CASCADE"), primary_key=True
    )
    cat_id: Mapped[str] = mapped_column(ForeignKey("cats.id", ondelete="CASCADE"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    reservation: Mapped[Reservation] = relationship(back_populates="cats")
    cat: Mapped[Cat] = relationship()


class CareTask(Base):
    __tablename__ = "care_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    type: Mapped[CareTaskType] = mapped_column(Enum(CareTaskType, name="care_task_type"), nullable=False)
    status: Mapped[CareTaskStatus] = mapped_column(
        Enum(CareTaskStatus, name="care_task_status"), nullable=False, default=CareTaskStatus.OPEN
    )
    notes: Mapped[str | None] = mapped_column(Text)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cat_id: Mapped[str | None] = mapped_column(ForeignKey("cats.id", ondelete="SET NULL"))
    reservation_id: Mapped[str | None] = mapped_column(ForeignKey("reservations.id", ondelete="SET NULL"))
    assigned_staff_id: Mapped[str | None] = mapped_column(ForeignKey("staff.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    cat: Mapped[Cat | None] = relationship()
    reservation: Mapped[Reservation | None] = relationship()
    assigned_staff: Mapped[Staff | None] = relationship()


class CareTaskEvent(Base):
    """Audit trail of applied status changes."""

    __tablename__ = "care_task_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)  # STATUS_CHANGED
    payload: Mapped[dict | None] = mapped_column(JSON)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
