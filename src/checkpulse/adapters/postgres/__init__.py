"""PostgreSQL persistence using asyncpg."""

from .app_db import AppDatabase
from .repositories import (
    PostgresCheckinStore,
    PostgresExemptionStore,
    PostgresOrganizationStore,
    PostgresUserStore,
    PostgresVacationStore,
)
from .schema import create_schema, metadata, schema_statements

__all__ = [
    "AppDatabase",
    "PostgresCheckinStore",
    "PostgresExemptionStore",
    "PostgresOrganizationStore",
    "PostgresUserStore",
    "PostgresVacationStore",
    "create_schema",
    "metadata",
    "schema_statements",
]
