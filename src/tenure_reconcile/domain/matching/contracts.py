"""Match results produced by the duplicate matchers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from tenure_reconcile.domain.model import ConfidenceLevel, EntitySide

if TYPE_CHECKING:
    from uuid import UUID

HIGH_CONFIDENCE_THRESHOLD: Final[float] = 90.0
MEDIUM_CONFIDENCE_THRESHOLD: Final[float] = 70.0
MAX_SCORE: Final[float] = 100.0


def confidence_for(score: float) -> ConfidenceLevel | None:
    """Map a score onto a tier; ``None`` means the pair is not a duplicate."""

    if score >= HIGH_CONFIDENCE_THRESHOLD:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_CONFIDENCE_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return None


@dataclass(frozen=True, slots=True)
class EntityRef:
    """Either an authoritative id or a staging ``original_entity_id``."""

    entity_id: UUID
    side: EntitySide
    identifier: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class _MatchBase:
    first: EntityRef
    second: EntityRef
    score: float
    confidence: ConfidenceLevel
    criteria: dict[str, Any] = field(default_factory=dict)

    @property
    def is_within_batch(self) -> bool:
        return self.first.side is EntitySide.STAGING and self.second.side is EntitySide.STAGING

    @property
    def pair_key(self) -> frozenset[UUID]:
        return frozenset({self.first.entity_id, self.second.entity_id})


@dataclass(frozen=True, slots=True, kw_only=True)
class PersonMatch(_MatchBase):
    national_id_matched: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class PropertyMatch(_MatchBase):
    building_code: str
    unit_identifier: str


type MatchResult = PersonMatch | PropertyMatch


def keep_best[TMatch: (PersonMatch, PropertyMatch)](matches: list[TMatch]) -> list[TMatch]:
    """Deduplicate unordered pairs, keeping the highest score and first-seen order."""

    best: dict[frozenset[UUID], TMatch] = {}
    for match in matches:
        current = best.get(match.pair_key)
        if current is None or match.score > current.score:
            best[match.pair_key] = match
    return list(best.values())
