"""Ports for collaborators the commit orchestrator delegates to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uuid import UUID

    from tenure_reconcile.domain.model import CommitReport, Package


@runtime_checkable
class CommitService(Protocol):
    """Translate approved staging rows of one package into registry records.

    Implementations run inside a single transaction: either every committed row
    becomes visible or none does. Per-record failures are reported, not raised.
    """

    def commit(self, package_id: UUID, *, committed_by: UUID | None) -> CommitReport: ...


@runtime_checkable
class PackageArchiver(Protocol):
    def archive(self, package: Package) -> str:
        """Store the original container and return its archive location."""
        ...
