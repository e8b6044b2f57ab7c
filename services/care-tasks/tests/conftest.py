from __future__ import annotations

import importlib
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(SERVICE_ROOT) not in sys.path:
    sys.path.append(str(SERVICE_ROOT))

# Module-level imports in unit tests must not need a Postgres driver.
os.environ.setdefault("DB_DSN", "sqlite+aiosqlite://")


@pytest.fixture()
def app_context(monkeypatch, tmp_path):
    db_path = tmp_path / "care-tasks.sqlite"
    monkeypatch.setenv("DB_DSN", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.delenv("TASKS_ENFORCE_TRANSITIONS", raising=False)

    for module in [m for m in sys.modules if m == "app" or m.startswith("app.")]:
        del sys.modules[module]

    return SimpleNamespace(
        main=importlib.import_module("app.main"),
        db=importlib.import_module("app.db"),
        models=importlib.import_module("app.models"),
        service=importlib.import_module("app.service"),
        policy=importlib.import_module("app.policy"),
    )


@pytest_asyncio.fixture()
async def seeded(app_context):
    """Create the schema and a small hotel: two staff, a manager, tasks and reservations."""

    m = app_context.models
    await app_context.db.init_db()

    async with app_context.db.SessionLocal() as session:
        session.add_all(
            [
                m.User(id="u1", email="ayse@cathotel.test", name="Ayse", role=m.UserRole.STAFF),
                m.User(id="u2", email="mert@cathotel.test", name="Mert", role=m.UserRole.STAFF),
                m.User(id="mgr", email="manager@cathotel.test", name="Deniz", role=m.UserRole.MANAGER),
                m.User(id="cu1", email="owner@example.test", name="Selin", role=m.UserRole.CUSTOMER),
            ]
        )
        await session.flush()
        session.add_all(
            [
                m.Staff(id="s1", user_id="u1"),
                m.Staff(id="s2", user_id="u2"),
                m.Customer(id="c1", user_id="cu1"),
                m.RoomType(id="rt1", name="Deluxe Suite"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                m.Cat(id="cat1", customer_id="c1", name="Pamuk"),
                m.Room(id="room1", name="D-101", room_type_id="rt1"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                m.Reservation(
                    id="r1",
                    code="CAT-0001",
                    status=m.ReservationStatus.CONFIRMED,
                    check_in=datetime(2025, 1, 10, tzinfo=timezone.utc),
                    check_out=datetime(2025, 1, 12, tzinfo=timezone.utc),
                    customer_id="c1",
                    room_type_id="rt1",
                    room_id="room1",
                ),
                m.Reservation(
                    id="r2",
                    code="CAT-0002",
                    status=m.ReservationStatus.CHECKED_IN,
                    check_in=datetime(2025, 1, 3, tzinfo=timezone.utc),
                    check_out=datetime(2025, 1, 8, tzinfo=timezone.utc),
                    customer_id="c1",
                    room_type_id="rt1",
                ),
                m.Reservation(
                    id="r3",
                    code="CAT-0003",
                    status=m.ReservationStatus.CHECKED_OUT,
                    check_in=datetime(2025, 1, 1, tzinfo=timezone.utc),
                    check_out=datetime(2025, 1, 2, tzinfo=timezone.utc),
                    customer_id="c1",
                ),
            ]
        )
        await session.flush()
        session.add(m.ReservationCat(reservation_id="r1", cat_id="cat1", position=0))
        session.add_all(
            [
                m.CareTask(
                    id="t1",
                    type=m.CareTaskType.FEEDING,
                    status=m.CareTaskStatus.OPEN,
                    notes="Wet food only",
                    scheduled_at=datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc),
                    cat_id="cat1",
                    reservation_id="r1",
                    assigned_staff_id="s1",
                ),
                m.CareTask(
                    id="t2",
                    type=m.CareTaskType.CLEANING,
                    status=m.CareTaskStatus.OPEN,
                    scheduled_at=datetime(2025, 1, 10, 8, 0, tzinfo=timezone.utc),
                    assigned_staff_id="s2",
                ),
                m.CareTask(
                    id="t3",
                    type=m.CareTaskType.NOTE,
                    status=m.CareTaskStatus.IN_PROGRESS,
                    scheduled_at=None,
                    assigned_staff_id="s1",
                ),
                m.CareTask(
                    id="t4",
                    type=m.CareTaskType.MEDICATION,
                    status=m.CareTaskStatus.OPEN,
                    scheduled_at=datetime(2025, 1, 9, 18, 0, tzinfo=timezone.utc),
                    assigned_staff_id=None,
                ),
            ]
        )
        await session.commit()

    return app_context


@pytest_asyncio.fixture()
async def client(seeded):
    async with LifespanManager(seeded.main.app):
        transport = ASGITransport(app=seeded.main.app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
