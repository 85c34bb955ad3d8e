"""Staged-record validation levels and the reducer that applies them."""

from __future__ import annotations

from .claims import check_claim_lifecycle
from .codes import check_building_codes
from .contracts import (
    Findings,
    FindingsBuilder,
    LevelReport,
    RecordFindings,
    ValidationLevel,
    ValidationSummary,
    merge_findings,
)
from .fields import check_fields
from .geometry import Geometry, WktError, check_spatial_geometry, geometry_problems, parse_wkt
from .households import check_household_structure
from .ownership import check_ownership_evidence
from .pipeline import DEFAULT_LEVELS, ValidationPipeline, load_batch, run_levels
from .references import FOREIGN_KEYS, check_references
from .vocabulary import (
    DEFAULT_VOCABULARIES,
    CodedValueCheck,
    VersionDifference,
    Vocabulary,
    VocabularyCatalog,
    VocabularyVersionCheck,
    compare_versions,
)

__all__ = [
    "DEFAULT_LEVELS",
    "DEFAULT_VOCABULARIES",
    "FOREIGN_KEYS",
    "CodedValueCheck",
    "Findings",
    "FindingsBuilder",
    "Geometry",
    "LevelReport",
    "RecordFindings",
    "ValidationLevel",
    "ValidationPipeline",
    "ValidationSummary",
    "VersionDifference",
    "Vocabulary",
    "VocabularyCatalog",
    "VocabularyVersionCheck",
    "WktError",
    "check_building_codes",
    "check_claim_lifecycle",
    "check_fields",
    "check_household_structure",
    "check_ownership_evidence",
    "check_references",
    "check_spatial_geometry",
    "compare_versions",
    "geometry_problems",
    "load_batch",
    "merge_findings",
    "parse_wkt",
    "run_levels",
]
