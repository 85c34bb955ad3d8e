"""Schema migrations for the staging and registry tables."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import create_engine

from tenure_reconcile.config import get_database_config

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parents[5]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"
MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

# Options owned by this module; pyproject values for them are ignored.
_MANAGED_OPTIONS: Final[frozenset[str]] = frozenset(
    {"script_location", "prepend_sys_path", "sqlalchemy.url"}
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from tenure_reconcile.config import DatabaseConfig


def _pyproject_options() -> dict[str, str]:
    if not PYPROJECT_PATH.exists():
        return {}
    with PYPROJECT_PATH.open("rb") as pyproject_file:
        section = tomllib.load(pyproject_file).get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in section.items()}


def _build_config() -> Config:
    """Return an Alembic Config whose revisions always come from this package.

    Installed copies have no project checkout, so ``pyproject.toml`` only
    contributes the optional extras such as ``file_template``.
    """

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    for key, value in _pyproject_options().items():
        if key not in _MANAGED_OPTIONS:
            config.set_main_option(key, value)
    return config


def _run_on(engine: Engine, action: str, revision: str) -> None:
    config = _build_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        getattr(command, action)(config, revision)


def upgrade_head(*, engine: Engine | None = None, database: DatabaseConfig | None = None) -> None:
    """Bring the schema to the latest revision.

    Without an ``engine`` a short-lived one is built from ``database`` (or the
    environment) and disposed afterwards.
    """

    if engine is not None:
        _run_on(engine, "upgrade", "head")
        return
    settings = database or get_database_config()
    owned = create_engine(settings.uri, **settings.engine_options())
    try:
        _run_on(owned, "upgrade", "head")
    finally:
        owned.dispose()


def downgrade_base(*, engine: Engine) -> None:
    """Drop every table managed by the migrations."""

    _run_on(engine, "downgrade", "base")


def current_revision(engine: Engine) -> str | None:
    """Return the revision stamped on the database, or ``None`` when unmigrated."""

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
