"""Check-in / check-out reminders derived from reservation state.

Nothing here touches the database: the projection is a pure function of the
reservations passed in and the ``now`` timestamp, so calling it twice with the
same input yields the same tasks with the same ids.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional

from .models import Reservation, ReservationStatus
from .schemas import CatRef, CustomerRef, ReservationSnapshot, ReservationTask, RoomRef

logger = logging.getLogger("care_tasks.reservation_tasks")

HOTEL_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CHECKIN_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})
CHECKOUT_STATUSES = frozenset({ReservationStatus.CHECKED_IN})

# Statuses worth loading at all; anything else can never produce a reminder.
PROJECTABLE_STATUSES = CHECKIN_STATUSES | CHECKOUT_STATUSES

DEFAULT_CAT_NAME = "Cat"
DEFAULT_ROOM_NAME = "Room"
DEFAULT_CUSTOMER_NAME = "Customer"

_TITLES = {"CHECKIN": "Check-in", "CHECKOUT": "Check-out"}


# --- Helpers -----------------------------------------------------------------

def is_hotel_day(value: Optional[str]) -> bool:
    return bool(value) and HOTEL_DAY_RE.match(value.strip()) is not None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime string, returning None when it is unusable."""

    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def calendar_day(value: str, parsed: datetime, now: datetime) -> date:
    """Day a raw value falls on, seen from ``now``'s timezone."""

    if is_hotel_day(value):
        return parsed.date()
    if parsed.tzinfo is not None and now.tzinfo is not None:
        return parsed.astimezone(now.tzinfo).date()
    return parsed.date()


def sort_key(value: Optional[str]) -> float:
    """Epoch seconds for ordering; unparseable or missing values sort last."""

    parsed = parse_timestamp(value)
    if parsed is None:
        return math.inf
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def format_time_label(value: Optional[str]) -> Optional[str]:
    if not value or is_hotel_day(value):
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.strftime("%H:%M")


def _customer_label(customer: Optional[CustomerRef]) -> str:
    if customer is None:
        return DEFAULT_CUSTOMER_NAME
    return customer.name or customer.email or DEFAULT_CUSTOMER_NAME


def _room_label(reservation: ReservationSnapshot) -> str:
    for ref in (reservation.room_type, reservation.room):
        if ref is not None and ref.name:
            return ref.name
    return DEFAULT_ROOM_NAME


def _cat_label(reservation: ReservationSnapshot) -> str:
    if reservation.cats and reservation.cats[0].name:
        return reservation.cats[0].name
    return DEFAULT_CAT_NAME


def build_task(reservation: ReservationSnapshot, task_type: str, scheduled_at: Optional[str]) -> ReservationTask:
    time_label = format_time_label(scheduled_at)
    detail_parts = [
        _customer_label(reservation.customer),
        reservation.code,
        f"at {time_label}" if time_label else None,
    ]
    return ReservationTask(
        id=f"reservation-{reservation.id}-{task_type.lower()}",
        reservation_id=reservation.id,
        type=task_type,
        scheduled_at=scheduled_at,
        title=f"{_TITLES[task_type]} - {_cat_label(reservation)} ({_room_label(reservation)})",
        detail=" | ".join(part for part in detail_parts if part),
    )


def _is_due(reservation: ReservationSnapshot, field: str, now: datetime) -> bool:
    raw = getattr(reservation, field)
    if raw is None:
        return False
    parsed = parse_timestamp(raw)
    if parsed is None:
        logger.warning(
            "Reservation %s has an unparseable %s value %r; skipping reminder",
            reservation.id,
            field,
            raw,
        )
        return False
    return calendar_day(raw, parsed, now) <= now.date()


# --- Projection ----------------------------------------------------------------

def project_reservation_tasks(
    reservations: Iterable[ReservationSnapshot],
    now: Optional[datetime] = None,
) -> List[ReservationTask]:
    """Derive due check-in / check-out reminders, earliest first."""

    now = now or datetime.now(timezone.utc)
    tasks: List[ReservationTask] = []

    for reservation in reservations:
        if reservation.status in CHECKIN_STATUSES and _is_due(reservation, "check_in", now):
            tasks.append(build_task(reservation, "CHECKIN", reservation.check_in))
        if reservation.status in CHECKOUT_STATUSES and _is_due(reservation, "check_out", now):
            tasks.append(build_task(reservation, "CHECKOUT", reservation.check_out))

    # list.sort is stable, so ties keep reservation order
    tasks.sort(key=lambda task: sort_key(task.scheduled_at))
    return tasks


# --- ORM conversion -------------------------------------------------------------

def _raw_date(value: Optional[datetime]) -> Optional[str]:
    """Render a stored check-in/out value; midnight values are hotel days."""

    if value is None:
        return None
    if value.time() == time.min:
        return value.date().isoformat()
    return value.isoformat()


def snapshot_from_model(reservation: Reservation) -> ReservationSnapshot:
    customer = None
    if reservation.customer is not None:
        user = reservation.customer.user
        customer = CustomerRef(name=user.name, email=user.email)
    return ReservationSnapshot(
        id=reservation.id,
        code=reservation.code,
        status=reservation.status,
        check_in=_raw_date(reservation.check_in),
        check_out=_raw_date(reservation.check_out),
        cats=[CatRef(id=link.cat.id, name=link.cat.name) for link in reservation.cats],
        room_type=(
            RoomRef(id=reservation.room_type.id, name=reservation.room_type.name)
            if reservation.room_type is not None
            else None
        ),
        room=(
            RoomRef(id=reservation.room.id, name=reservation.room.name)
            if reservation.room is not None
            else None
        ),
        customer=customer,
    )
