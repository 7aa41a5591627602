"""Table layout for the PostgreSQL stores.

The tables are declared once as SQLAlchemy Core metadata and emitted as
PostgreSQL DDL; the repositories talk to them through asyncpg.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from checkpulse.adapters.postgres.app_db import AppDatabase

# Custom naming conventions for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)


def _id_column() -> Column:
    return Column("id", Uuid, primary_key=True, server_default=text("gen_random_uuid()"))


def _created_at_column() -> Column:
    return Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now())


organizations = Table(
    "organizations",
    metadata,
    _id_column(),
    Column("name", String(100), nullable=False),
    Column("timezone", String(64), nullable=False, server_default="America/Chicago"),
    # Weekdays use date.weekday() numbering: Monday=0 .. Sunday=6
    Column("week_start", SmallInteger, nullable=False, server_default="5"),
    Column("checkin_due_day", SmallInteger, nullable=False, server_default="4"),
    Column("checkin_due_time", Time, nullable=False, server_default="17:00"),
    Column("reminder_day", SmallInteger),
    Column("reminder_time", Time, nullable=False, server_default="09:00"),
    Column("directory_channel", String(255)),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    _created_at_column(),
    CheckConstraint("week_start BETWEEN 0 AND 6", name="week_start_weekday"),
)

users = Table(
    "users",
    metadata,
    _id_column(),
    Column("organization_id", Uuid, ForeignKey("organizations.id"), nullable=False),
    Column("identity", String(255), nullable=False),
    Column("display_name", String(255), nullable=False),
    Column("role", String(20), nullable=False, server_default="member"),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    _created_at_column(),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("organization_id", "identity"),
)

checkins = Table(
    "checkins",
    metadata,
    _id_column(),
    Column("user_id", Uuid, ForeignKey("users.id"), nullable=False),
    Column("organization_id", Uuid, ForeignKey("organizations.id"), nullable=False),
    Column("week_of", DateTime(timezone=True), nullable=False),
    Column("submitted_at", DateTime(timezone=True), nullable=False),
    Column("reviewed", Boolean, nullable=False, server_default=text("false")),
    Column("reviewed_by", Uuid, ForeignKey("users.id")),
    Column("reviewed_at", DateTime(timezone=True)),
    Column("review_comments", Text),
    _created_at_column(),
    UniqueConstraint("user_id", "week_of"),
    Index("ix_checkins_org_week_of", "organization_id", "week_of"),
)

vacations = Table(
    "vacations",
    metadata,
    _id_column(),
    Column("organization_id", Uuid, ForeignKey("organizations.id"), nullable=False),
    Column("user_id", Uuid, ForeignKey("users.id"), nullable=False),
    Column("starts_on", Date, nullable=False),
    Column("ends_on", Date, nullable=False),
    Column("note", Text),
    _created_at_column(),
    CheckConstraint("ends_on >= starts_on", name="date_order"),
    Index("ix_vacations_user_range", "user_id", "starts_on", "ends_on"),
)


checkin_exemptions = Table(
    "checkin_exemptions",
    metadata,
    _id_column(),
    Column("organization_id", Uuid, ForeignKey("organizations.id"), nullable=False),
    Column("user_id", Uuid, ForeignKey("users.id"), nullable=False),
    # Any date inside the exempted period
    Column("week_of", Date, nullable=False),
    Column("reason", Text),
    Column("created_by", Uuid, ForeignKey("users.id")),
    _created_at_column(),
    UniqueConstraint("user_id", "week_of"),
    Index("ix_checkin_exemptions_org_week_of", "organization_id", "week_of"),
)


def schema_statements() -> list[str]:
    """Idempotent PostgreSQL DDL for every table and index, in dependency order."""
    dialect = postgresql.dialect()
    statements = []
    for table in metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)))
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)))
    return statements


async def create_schema(db: AppDatabase) -> None:
    """Create missing tables and indexes."""
    for statement in schema_statements():
        await db.execute(statement)
