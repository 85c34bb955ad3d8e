"""Logging setup for the reconciliation CLI and workers."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

LOG_LEVEL_ENV_VAR: Final[str] = "TENURE_RECONCILE_LOG_LEVEL"

# Library loggers that flood INFO output with per-statement detail.
_NOISY_LOGGERS: Final[tuple[str, ...]] = ("sqlalchemy.engine", "alembic.runtime.migration")


def resolve_log_level(default: int = logging.INFO) -> int:
    """Return the level named by ``TENURE_RECONCILE_LOG_LEVEL`` or ``default``."""

    raw = os.getenv(LOG_LEVEL_ENV_VAR)
    if raw is None or not raw.strip():
        return default
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        raise ConfigurationError(f"Invalid log level for {LOG_LEVEL_ENV_VAR}: {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger for workflow output.

    Without an explicit ``level`` the environment decides, falling back to INFO.
    Database and migration chatter is held at WARNING unless DEBUG is requested.
    Pass ``force=True`` to reconfigure during tests.
    """

    effective = resolve_log_level() if level is None else level
    logging.basicConfig(
        level=effective,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    library_level = logging.DEBUG if effective <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
