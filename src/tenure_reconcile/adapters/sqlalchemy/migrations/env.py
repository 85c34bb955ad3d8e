"""Alembic entry point for the staging and registry schema.

Programmatic upgrades hand over an open connection through
``config.attributes["connection"]``; the ``alembic`` command line falls back to
the database configured in the environment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from alembic import context
from sqlalchemy import create_engine, pool

from tenure_reconcile.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from tenure_reconcile.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

start_mappers()

config = context.config
target_metadata = mapper_registry.metadata

# SQLite cannot ALTER most constraints in place, so every revision runs in batch mode.
CONTEXT_OPTIONS: dict[str, Any] = {
    "target_metadata": target_metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _migrate(**options: Any) -> None:
    context.configure(**CONTEXT_OPTIONS, **options)
    with context.begin_transaction():
        context.run_migrations()


def _migrate_connection(connection: Connection) -> None:
    _migrate(connection=connection)


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url") or get_database_config().uri
    _migrate(url=url, literal_binds=True)


def run_migrations_online() -> None:
    handed_over = config.attributes.get("connection")
    if handed_over is not None:
        _migrate_connection(handed_over)
        return

    settings = get_database_config()
    engine = create_engine(settings.uri, poolclass=pool.NullPool, **settings.engine_options())
    try:
        with engine.connect() as connection:
            _migrate_connection(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
