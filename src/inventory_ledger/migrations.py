"""Forward migrations with a single-step rollback.

Applied migrations are recorded by name in ``schema_migrations``. A migration
is recorded in the same transaction as its DDL, so the ledger only ever lists
migrations whose statements succeeded. ``rollback`` reverts the most recently
applied migration and nothing else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from . import models  # noqa: F401 - registers the tables on SQLModel.metadata
from .database import utcnow
from .exceptions import MigrationError

logger = logging.getLogger(__name__)

ledger_metadata = MetaData()

schema_migrations = Table(
    "schema_migrations",
    ledger_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("applied_at", DateTime(timezone=True), nullable=False, default=utcnow),
)


@dataclass(frozen=True, slots=True)
class Migration:
    name: str
    upgrade: Callable[[Connection], None]
    downgrade: Callable[[Connection], None]


def _create_table(name: str) -> Callable[[Connection], None]:
    def run(conn: Connection) -> None:
        SQLModel.metadata.tables[name].create(conn)

    return run


def _drop_table(name: str) -> Callable[[Connection], None]:
    def run(conn: Connection) -> None:
        SQLModel.metadata.tables[name].drop(conn)

    return run


def _sql(statement: str) -> Callable[[Connection], None]:
    def run(conn: Connection) -> None:
        conn.execute(text(statement))

    return run


MIGRATIONS: tuple[Migration, ...] = (
    Migration("001_create_products_table", _create_table("products"), _drop_table("products")),
    Migration("002_create_adjustments_table", _create_table("adjustments"), _drop_table("adjustments")),
    Migration(
        "003_index_adjustments_sku",
        _sql("CREATE INDEX ix_adjustments_sku ON adjustments (sku)"),
        _sql("DROP INDEX ix_adjustments_sku"),
    ),
)


def _applied(conn: Connection) -> list[tuple[str, datetime]]:
    statement = select(schema_migrations.c.name, schema_migrations.c.applied_at).order_by(
        schema_migrations.c.applied_at, schema_migrations.c.id
    )
    return [(row.name, row.applied_at) for row in conn.execute(statement)]


def migrate(engine: Engine, migrations: tuple[Migration, ...] = MIGRATIONS) -> list[str]:
    """Apply every pending migration in order and return the names applied."""

    ledger_metadata.create_all(engine)
    with engine.connect() as conn:
        already = {name for name, _ in _applied(conn)}

    applied: list[str] = []
    for migration in migrations:
        if migration.name in already:
            logger.debug("Migration %s already applied; skipping", migration.name)
            continue
        logger.info("Applying migration %s", migration.name)
        try:
            with engine.begin() as conn:
                migration.upgrade(conn)
                conn.execute(schema_migrations.insert().values(name=migration.name, applied_at=utcnow()))
        except SQLAlchemyError as exc:
            raise MigrationError(f"Migration {migration.name} failed: {exc}") from exc
        applied.append(migration.name)
    return applied


def rollback(engine: Engine, migrations: tuple[Migration, ...] = MIGRATIONS) -> Optional[str]:
    """Revert the most recently applied migration. Returns its name, or ``None`` if nothing is applied."""

    ledger_metadata.create_all(engine)
    with engine.connect() as conn:
        history = _applied(conn)
    if not history:
        logger.info("No migrations to roll back")
        return None

    name = history[-1][0]
    registry = {migration.name: migration for migration in migrations}
    if name not in registry:
        raise MigrationError(f"No rollback available for unknown migration {name}")

    logger.info("Rolling back migration %s", name)
    try:
        with engine.begin() as conn:
            registry[name].downgrade(conn)
            conn.execute(schema_migrations.delete().where(schema_migrations.c.name == name))
    except SQLAlchemyError as exc:
        raise MigrationError(f"Rollback of {name} failed: {exc}") from exc
    return name


def status(engine: Engine, migrations: tuple[Migration, ...] = MIGRATIONS) -> list[tuple[str, Optional[datetime]]]:
    """Return every known migration with its applied timestamp (``None`` when pending)."""

    ledger_metadata.create_all(engine)
    with engine.connect() as conn:
        applied = dict(_applied(conn))
    return [(migration.name, applied.get(migration.name)) for migration in migrations]
