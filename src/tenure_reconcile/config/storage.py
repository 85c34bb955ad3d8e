"""Where the registry database and package files live."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from .env import env_flag
from .errors import ConfigurationError

APP_DIR_NAME: Final[str] = "tenure_reconcile"
DEFAULT_DB_FILENAME: Final[str] = "registry.db"
DATA_DIR_ENV_VAR: Final[str] = "TENURE_RECONCILE_DATA_DIR"
DATABASE_URI_ENV_VAR: Final[str] = "TENURE_RECONCILE_DATABASE_URI"
SQL_ECHO_ENV_VAR: Final[str] = "TENURE_RECONCILE_SQL_ECHO"
SQLITE_TIMEOUT_ENV_VAR: Final[str] = "TENURE_RECONCILE_SQLITE_TIMEOUT"
DEFAULT_SQLITE_TIMEOUT: Final[float] = 15.0


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Root directory holding the registry database, incoming packages and archives."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_path(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir / self.database_filename

    def subdirectory(self, name: str) -> Path:
        return self.resolve_data_dir() / name


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings for the staging and registry database.

    Several operators may review the same package, so SQLite connections wait
    ``sqlite_timeout`` seconds for a competing writer instead of failing at once.
    """

    uri: str
    echo: bool = False
    sqlite_timeout: float = DEFAULT_SQLITE_TIMEOUT

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"future": True, "echo": self.echo}
        if self.is_sqlite:
            options["connect_args"] = {"timeout": self.sqlite_timeout}
        return options


def default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv(DATA_DIR_ENV_VAR)
    return StorageConfig(data_dir=Path(env_dir) if env_dir else default_data_dir())


def _sqlite_timeout() -> float:
    raw = os.getenv(SQLITE_TIMEOUT_ENV_VAR)
    if raw is None or not raw.strip():
        return DEFAULT_SQLITE_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid number for {SQLITE_TIMEOUT_ENV_VAR}: {raw!r}") from exc
    if timeout < 0:
        raise ConfigurationError(f"{SQLITE_TIMEOUT_ENV_VAR} must not be negative")
    return timeout


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """Build database settings, preferring an explicit URI over the data directory."""

    env_uri = os.getenv(DATABASE_URI_ENV_VAR)
    if env_uri and env_uri.strip():
        uri = env_uri.strip()
    else:
        storage_config = storage or get_storage_config()
        uri = f"sqlite+pysqlite:///{storage_config.database_path()}"
    return DatabaseConfig(
        uri=uri,
        echo=env_flag(SQL_ECHO_ENV_VAR),
        sqlite_timeout=_sqlite_timeout(),
    )
