"""Settings for the package reconciliation workflow."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_flag
from .storage import StorageConfig, get_storage_config

PACKAGE_FILE_SUFFIX: Final[str] = ".uhc"


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Filesystem locations and commit behaviour for package processing."""

    package_dir: Path
    archive_dir: Path
    cleanup_staging_after_commit: bool = False
    package_file_suffix: str = PACKAGE_FILE_SUFFIX


def _directory(env_var: str, storage: StorageConfig, default_name: str) -> Path:
    override = os.getenv(env_var)
    if override and override.strip():
        return Path(override.strip()).expanduser()
    return storage.subdirectory(default_name)


def get_pipeline_config(*, storage: StorageConfig | None = None) -> PipelineConfig:
    storage_config = storage or get_storage_config()
    return PipelineConfig(
        package_dir=_directory("TENURE_RECONCILE_PACKAGE_DIR", storage_config, "packages"),
        archive_dir=_directory("TENURE_RECONCILE_ARCHIVE_DIR", storage_config, "archive"),
        cleanup_staging_after_commit=env_flag("TENURE_RECONCILE_CLEANUP_STAGING"),
    )
