"""Alembic environment for the Eventra schema.

Runs against ``EVENTRA_DATABASE_URL`` (or the local SQLite file in local
mode) unless ``alembic -x url=...`` overrides it. The ``events_*``
materialized views are created by hand in the revisions, so autogenerate
is told to leave them alone.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

import eventra.db.models  # noqa: F401 register all ORM models
from eventra.config import settings
from eventra.db.base import Base
from eventra.services.aggregation import INTERVAL_CONFIGS

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
AGGREGATE_VIEWS = {c.view_name for c in INTERVAL_CONFIGS.values()}


def database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("url") or settings.effective_database_url


def include_object(obj, name, type_, reflected, compare_to):
    return not (type_ == "table" and name in AGGREGATE_VIEWS)


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        render_as_batch=database_url().startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
