"""Shared validation contracts.

A level is a pure function from a :class:`StagedBatch` to :data:`Findings`.
Findings are keyed by ``(kind, original_entity_id)`` so they can be merged
across levels without touching the records themselves.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from uuid import UUID

    from tenure_reconcile.domain.model import EntityKind, RecordKey, StagedBatch, StagingRecord


@dataclass(frozen=True, slots=True)
class RecordFindings:
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    def __add__(self, other: RecordFindings) -> RecordFindings:
        return RecordFindings(
            errors=(*self.errors, *other.errors),
            warnings=(*self.warnings, *other.warnings),
        )


type Findings = Mapping[RecordKey, RecordFindings]


class FindingsBuilder:
    """Collect messages for one level and freeze them into :data:`Findings`."""

    def __init__(self) -> None:
        self._errors: dict[RecordKey, list[str]] = defaultdict(list)
        self._warnings: dict[RecordKey, list[str]] = defaultdict(list)

    def error(self, record: StagingRecord, message: str) -> None:
        self._errors[record.key].append(message)

    def warning(self, record: StagingRecord, message: str) -> None:
        self._warnings[record.key].append(message)

    def build(self) -> dict[RecordKey, RecordFindings]:
        keys = self._errors.keys() | self._warnings.keys()
        return {
            key: RecordFindings(
                errors=tuple(self._errors.get(key, ())),
                warnings=tuple(self._warnings.get(key, ())),
            )
            for key in keys
        }


def merge_findings(*collections: Findings) -> dict[RecordKey, RecordFindings]:
    """Concatenate findings per record, preserving level order."""

    merged: dict[RecordKey, RecordFindings] = {}
    for collection in collections:
        for key, findings in collection.items():
            merged[key] = merged[key] + findings if key in merged else findings
    return merged


def count_messages(findings: Iterable[RecordFindings]) -> tuple[int, int]:
    errors = warnings = 0
    for item in findings:
        errors += len(item.errors)
        warnings += len(item.warnings)
    return errors, warnings


class ValidationCheck(Protocol):
    def __call__(self, batch: StagedBatch) -> Findings: ...


@dataclass(frozen=True, slots=True)
class ValidationLevel:
    level: int
    name: str
    check: ValidationCheck
    # kinds the level inspects; used only to report records_checked
    scope: frozenset[EntityKind] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class LevelReport:
    level: int
    name: str
    error_count: int
    warning_count: int
    records_checked: int
    duration: timedelta


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationSummary:
    package_id: UUID
    levels: tuple[LevelReport, ...] = field(default_factory=tuple)
    valid_count: int = 0
    invalid_count: int = 0
    skipped_count: int = 0
    warning_count: int = 0

    @property
    def total_records(self) -> int:
        return self.valid_count + self.invalid_count + self.skipped_count

    @property
    def error_count(self) -> int:
        return sum(report.error_count for report in self.levels)
