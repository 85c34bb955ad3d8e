"""Commit report value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from .enums import EntityKind

if TYPE_CHECKING:
    from uuid import UUID


@dataclass(slots=True, kw_only=True)
class EntityTypeSummary:
    approved: int = 0
    committed: int = 0
    failed: int = 0
    skipped: int = 0
    id_mappings: dict[UUID, UUID] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class CommitError:
    message: str
    entity_kind: EntityKind | None = None
    original_entity_id: UUID | None = None


@dataclass(slots=True, kw_only=True)
class CommitReport:
    """Outcome of one commit attempt; failures are listed, never dropped."""

    package_id: UUID
    summaries: dict[EntityKind, EntityTypeSummary] = field(
        default_factory=lambda: {kind: EntityTypeSummary() for kind in EntityKind}
    )
    duplicate_attachments_found: int = 0
    errors: list[CommitError] = field(default_factory=list)
    duration: timedelta = field(default_factory=timedelta)
    is_archived: bool = False
    archive_path: str | None = None

    def summary(self, kind: EntityKind) -> EntityTypeSummary:
        return self.summaries.setdefault(kind, EntityTypeSummary())

    def record_failure(self, kind: EntityKind, original_entity_id: UUID, message: str) -> None:
        self.summary(kind).failed += 1
        self.errors.append(
            CommitError(message=message, entity_kind=kind, original_entity_id=original_entity_id)
        )

    @property
    def total_approved(self) -> int:
        return sum(item.approved for item in self.summaries.values())

    @property
    def total_committed(self) -> int:
        return sum(item.committed for item in self.summaries.values())

    @property
    def total_failed(self) -> int:
        return sum(item.failed for item in self.summaries.values())

    @property
    def total_skipped(self) -> int:
        return sum(item.skipped for item in self.summaries.values())

    @property
    def success_rate(self) -> float:
        attempted = self.total_committed + self.total_failed
        if attempted == 0:
            return 0.0
        return round(self.total_committed / attempted * 100, 1)

    @property
    def is_fully_successful(self) -> bool:
        return not self.errors and self.total_failed == 0

    def summary_lines(self) -> list[str]:
        lines = [
            f"Total committed: {self.total_committed}",
            f"Total failed: {self.total_failed}",
            f"Total skipped: {self.total_skipped}",
            f"Duplicate attachments: {self.duplicate_attachments_found}",
        ]
        for kind, item in self.summaries.items():
            if item.approved or item.committed or item.failed or item.skipped:
                lines.append(
                    f"{kind}: committed={item.committed} failed={item.failed} "
                    f"skipped={item.skipped}"
                )
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "package_id": str(self.package_id),
            "total_approved": self.total_approved,
            "total_committed": self.total_committed,
            "total_failed": self.total_failed,
            "total_skipped": self.total_skipped,
            "success_rate": self.success_rate,
            "is_fully_successful": self.is_fully_successful,
            "duplicate_attachments_found": self.duplicate_attachments_found,
            "duration_seconds": self.duration.total_seconds(),
            "is_archived": self.is_archived,
            "archive_path": self.archive_path,
            "entities": {
                str(kind): {
                    "approved": item.approved,
                    "committed": item.committed,
                    "failed": item.failed,
                    "skipped": item.skipped,
                }
                for kind, item in self.summaries.items()
            },
            "errors": [
                {
                    "entity_kind": str(error.entity_kind) if error.entity_kind else None,
                    "original_entity_id": (
                        str(error.original_entity_id) if error.original_entity_id else None
                    ),
                    "message": error.message,
                }
                for error in self.errors
            ],
        }
