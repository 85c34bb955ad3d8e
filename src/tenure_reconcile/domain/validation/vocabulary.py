"""Levels 8 and 9: coded values against the controlled vocabularies.

Devices capture coded fields against a versioned vocabulary and list the
versions they used in the package manifest. Level 8 compares those versions
with the catalog: a major difference makes every value coded against that
vocabulary untrustworthy (error), a minor one is worth a warning, patches are
ignored. Level 9 flags codes the catalog does not know (warning).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from tenure_reconcile.domain.model import EntityKind, is_blank

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from tenure_reconcile.domain.model import StagedBatch, StagingRecord

    from .contracts import Findings

log = logging.getLogger(__name__)

_VERSION = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?$")


@dataclass(frozen=True, slots=True)
class Vocabulary:
    name: str
    version: str
    codes: frozenset[str]

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip().lower() in self.codes


def _vocabulary(name: str, version: str, *codes: str) -> Vocabulary:
    return Vocabulary(name=name, version=version, codes=frozenset(codes))


DEFAULT_VOCABULARIES: Final[tuple[Vocabulary, ...]] = (
    _vocabulary(
        "building_type", "1.0.0", "residential", "commercial", "mixed_use", "industrial", "public"
    ),
    _vocabulary(
        "building_status",
        "1.0.0",
        "intact",
        "minor_damage",
        "major_damage",
        "destroyed",
        "under_construction",
    ),
    _vocabulary(
        "property_unit_type", "1.0.0", "apartment", "shop", "office", "warehouse", "house", "other"
    ),
    _vocabulary(
        "property_unit_status", "1.0.0", "occupied", "vacant", "damaged", "destroyed", "unknown"
    ),
    _vocabulary(
        "evidence_type",
        "1.0.0",
        "ownership_deed",
        "rental_contract",
        "court_ruling",
        "utility_bill",
        "identity_document",
        "photo",
        "other",
    ),
    _vocabulary(
        "claim_source", "1.0.0", "field_collection", "office_submission", "system_import"
    ),
    _vocabulary("case_priority", "1.0.0", "low", "normal", "high", "urgent"),
    _vocabulary(
        "claim_status",
        "1.0.0",
        "draft",
        "submitted",
        "under_review",
        "approved",
        "rejected",
        "archived",
    ),
    _vocabulary(
        "lifecycle_stage",
        "1.0.0",
        "draft_pending_submission",
        "submitted",
        "initial_screening",
        "under_review",
        "awaiting_documents",
        "conflict_detected",
        "in_adjudication",
        "pending_approval",
        "approved",
        "rejected",
        "on_hold",
        "reassigned",
        "certificate_issued",
        "archived",
    ),
    _vocabulary("survey_type", "1.0.0", "field", "office", "revisit"),
)

# staging attribute -> vocabulary it is coded against
CODED_FIELDS: Final[dict[EntityKind, tuple[tuple[str, str], ...]]] = {
    EntityKind.BUILDING: (
        ("building_type", "building_type"),
        ("building_status", "building_status"),
    ),
    EntityKind.PROPERTY_UNIT: (
        ("unit_type", "property_unit_type"),
        ("unit_status", "property_unit_status"),
    ),
    EntityKind.EVIDENCE: (("evidence_type", "evidence_type"),),
    EntityKind.CLAIM: (
        ("claim_source", "claim_source"),
        ("priority", "case_priority"),
        ("claim_status", "claim_status"),
        ("lifecycle_stage", "lifecycle_stage"),
    ),
    EntityKind.SURVEY: (("survey_type", "survey_type"),),
}
CODED_KINDS: Final[frozenset[EntityKind]] = frozenset(CODED_FIELDS)


class VersionDifference(StrEnum):
    IDENTICAL = "identical"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


def _version_parts(version: str) -> tuple[int, int, int] | None:
    match = _VERSION.match(version.strip())
    if match is None:
        return None
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    return major, minor, patch


def compare_versions(package_version: str, current_version: str) -> VersionDifference:
    """Classify how far ``package_version`` is from ``current_version``.

    Anything that is not ``major[.minor[.patch]]`` cannot be trusted and counts
    as a major difference.
    """

    captured = _version_parts(package_version)
    current = _version_parts(current_version)
    if captured is None or current is None or captured[0] != current[0]:
        return VersionDifference.MAJOR
    if captured[1] != current[1]:
        return VersionDifference.MINOR
    if captured[2] != current[2]:
        return VersionDifference.PATCH
    return VersionDifference.IDENTICAL


class VocabularyCatalog:
    """The vocabularies currently in force, by name."""

    def __init__(self, vocabularies: Iterable[Vocabulary] = DEFAULT_VOCABULARIES) -> None:
        self._by_name: dict[str, Vocabulary] = {item.name: item for item in vocabularies}

    def get(self, name: str) -> Vocabulary | None:
        return self._by_name.get(name)

    def is_valid_code(self, name: str, code: str) -> bool:
        vocabulary = self._by_name.get(name)
        return vocabulary is not None and code in vocabulary


def _coded_values(batch: StagedBatch) -> Iterator[tuple[StagingRecord, str, str, str]]:
    """Yield ``(record, attribute, vocabulary name, value)`` for every coded value present."""

    for kind, coded in CODED_FIELDS.items():
        for record in batch.of_kind(kind):
            for attribute, name in coded:
                value = getattr(record, attribute)
                if value is None or is_blank(value):
                    continue
                yield record, attribute, name, value


def _label(attribute: str) -> str:
    return "".join(part.capitalize() for part in attribute.split("_"))


class VocabularyVersionCheck:
    """Level 8 over the versions recorded on the package manifest."""

    def __init__(self, catalog: VocabularyCatalog | None = None) -> None:
        self.catalog = catalog or VocabularyCatalog()

    def __call__(self, batch: StagedBatch) -> Findings:
        differences: dict[str, tuple[VersionDifference, str, str]] = {}
        for name, captured in batch.vocabulary_versions.items():
            vocabulary = self.catalog.get(name)
            if vocabulary is None:
                log.debug("Package %s lists unknown vocabulary %s", batch.package_id, name)
                continue
            difference = compare_versions(captured, vocabulary.version)
            if difference in (VersionDifference.MAJOR, VersionDifference.MINOR):
                differences[name] = (difference, captured, vocabulary.version)

        builder = FindingsBuilder()
        for record, attribute, name, _value in _coded_values(batch):
            if name not in differences:
                continue
            difference, captured, current = differences[name]
            message = (
                f"{_label(attribute)} was coded with {name} v{captured}; "
                f"current vocabulary is v{current} ({difference} version difference)"
            )
            if difference is VersionDifference.MAJOR:
                builder.error(record, message)
            else:
                builder.warning(record, message)
        return builder.build()


class CodedValueCheck:
    """Level 9: every coded value must exist in its vocabulary."""

    def __init__(self, catalog: VocabularyCatalog | None = None) -> None:
        self.catalog = catalog or VocabularyCatalog()

    def __call__(self, batch: StagedBatch) -> Findings:
        builder = FindingsBuilder()
        for record, attribute, name, value in _coded_values(batch):
            if self.catalog.get(name) is None:
                continue
            if not self.catalog.is_valid_code(name, value):
                builder.warning(record, f"Unknown {_label(attribute)} value: {value}")
        return builder.build()
