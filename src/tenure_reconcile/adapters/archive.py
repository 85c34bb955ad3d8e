"""Filesystem archive for committed package containers."""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING

from tenure_reconcile.domain.errors import NotFoundError
from tenure_reconcile.domain.model import utcnow

if TYPE_CHECKING:
    from pathlib import Path

    from tenure_reconcile.config import PipelineConfig
    from tenure_reconcile.domain.model import Package

log = logging.getLogger(__name__)


class FilesystemPackageArchiver:
    """Copy ``<package_dir>/<package_number><suffix>`` into ``<archive_dir>/<year>/<month>/``."""

    def __init__(self, *, package_dir: Path, archive_dir: Path, suffix: str) -> None:
        self.package_dir = package_dir
        self.archive_dir = archive_dir
        self.suffix = suffix

    @classmethod
    def from_config(cls, config: PipelineConfig) -> FilesystemPackageArchiver:
        return cls(
            package_dir=config.package_dir,
            archive_dir=config.archive_dir,
            suffix=config.package_file_suffix,
        )

    def source_path(self, package: Package) -> Path:
        return self.package_dir / f"{package.package_number}{self.suffix}"

    def archive(self, package: Package) -> str:
        source = self.source_path(package)
        if not source.is_file():
            raise NotFoundError(f"Package container {source} not found")

        now = utcnow()
        target_dir = self.archive_dir / f"{now.year:04d}" / f"{now.month:02d}"
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / source.name
        shutil.copy2(source, target)
        log.debug("Copied %s to %s", source, target)
        return str(target)
