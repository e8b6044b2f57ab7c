"""Environment-driven settings for the care-tasks service."""

from __future__ import annotations

import os


DEFAULT_DB_USER = "cathotel"
DEFAULT_DB_PASSWORD = "cathotel"
DEFAULT_DB_HOST = "localhost"
DEFAULT_DB_PORT = "5432"
DEFAULT_DB_NAME = "cathotel"
DEFAULT_LOG_LEVEL = "INFO"

# Hard cap on the staff task list; not exposed to clients.
TASK_LIST_LIMIT = 100

_TRUTHY = {"1", "true", "yes", "on"}


def _build_default_dsn() -> str:
    user = os.getenv("DB_USER", DEFAULT_DB_USER)
    password = os.getenv("DB_PASSWORD", DEFAULT_DB_PASSWORD)
    host = os.getenv("DB_HOST", DEFAULT_DB_HOST)
    port = os.getenv("DB_PORT", DEFAULT_DB_PORT)
    name = os.getenv("DB_NAME", DEFAULT_DB_NAME)
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


def get_database_dsn() -> str:
    """Return the database DSN configured via environment or defaults."""

    return os.getenv("DB_DSN", _build_default_dsn())


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()


def transitions_enforced() -> bool:
    """Whether status updates must follow the OPEN -> IN_PROGRESS -> DONE table."""

    return os.getenv("TASKS_ENFORCE_TRANSITIONS", "false").strip().lower() in _TRUTHY
