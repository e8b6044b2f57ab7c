"""Database utilities for the care-tasks service."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import get_database_dsn


engine = create_async_engine(get_database_dsn(), pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


async def init_db() -> None:
    """Create database tables if they are missing."""

    from . import models  # noqa: F401  ensure metadata is imported

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
