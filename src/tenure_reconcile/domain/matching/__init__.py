"""Duplicate matchers and the detection service that queues conflicts."""

from __future__ import annotations

from .arabic import (
    full_name_similarity,
    genders_match,
    name_similarity,
    normalize_arabic,
    normalize_phone,
    phones_match,
)
from .contracts import (
    HIGH_CONFIDENCE_THRESHOLD,
    MEDIUM_CONFIDENCE_THRESHOLD,
    EntityRef,
    MatchResult,
    PersonMatch,
    PropertyMatch,
    confidence_for,
)
from .detection import DetectionResult, DuplicateDetectionService, build_conflict
from .person import PersonMatcher, PersonScore, score_persons
from .property import PropertyMatcher, unit_key

__all__ = [
    "HIGH_CONFIDENCE_THRESHOLD",
    "MEDIUM_CONFIDENCE_THRESHOLD",
    "DetectionResult",
    "DuplicateDetectionService",
    "EntityRef",
    "MatchResult",
    "PersonMatch",
    "PersonMatcher",
    "PersonScore",
    "PropertyMatch",
    "PropertyMatcher",
    "build_conflict",
    "confidence_for",
    "full_name_similarity",
    "genders_match",
    "name_similarity",
    "normalize_arabic",
    "normalize_phone",
    "phones_match",
    "score_persons",
    "unit_key",
]
