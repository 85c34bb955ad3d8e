"""Composite person matching against the registry and within a batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from tenure_reconcile.domain.model import EntitySide

from .arabic import full_name_similarity, genders_match, phones_match
from .contracts import MAX_SCORE, EntityRef, PersonMatch, confidence_for, keep_best

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from tenure_reconcile.domain.model import Person, PersonAttributes, StagingPerson
    from tenure_reconcile.domain.ports import PersonRepository

log = logging.getLogger(__name__)

PHONE_SCORE: Final[float] = 30.0
NAME_SCORE: Final[float] = 40.0
YEAR_OF_BIRTH_SCORE: Final[float] = 15.0
GENDER_SCORE: Final[float] = 15.0


@dataclass(frozen=True, slots=True, kw_only=True)
class PersonScore:
    score: float
    national_id_matched: bool
    phone_matched: bool
    name_similarity: float
    year_of_birth_matched: bool
    gender_matched: bool

    def criteria(self) -> dict[str, Any]:
        return {
            "national_id_matched": self.national_id_matched,
            "phone_matched": self.phone_matched,
            "name_similarity": self.name_similarity,
            "year_of_birth_matched": self.year_of_birth_matched,
            "gender_matched": self.gender_matched,
        }


def national_ids_match(first: str | None, second: str | None) -> bool:
    if not first or not first.strip() or not second or not second.strip():
        return False
    return first.strip().casefold() == second.strip().casefold()


def score_persons(first: PersonAttributes, second: PersonAttributes) -> PersonScore:
    """Score two people; a national id match overrides every other signal."""

    phone = phones_match(first.mobile_number, second.mobile_number)
    name = full_name_similarity(
        (first.first_name_arabic, first.father_name_arabic, first.family_name_arabic),
        (second.first_name_arabic, second.father_name_arabic, second.family_name_arabic),
    )
    year = first.year_of_birth is not None and first.year_of_birth == second.year_of_birth
    gender = genders_match(first.gender, second.gender)
    national_id = national_ids_match(first.national_id, second.national_id)

    if national_id:
        score = MAX_SCORE
    else:
        score = name / 100.0 * NAME_SCORE
        if phone:
            score += PHONE_SCORE
        if year:
            score += YEAR_OF_BIRTH_SCORE
        if gender:
            score += GENDER_SCORE
        score = round(min(score, MAX_SCORE), 1)

    return PersonScore(
        score=score,
        national_id_matched=national_id,
        phone_matched=phone,
        name_similarity=name,
        year_of_birth_matched=year,
        gender_matched=gender,
    )


class PersonMatcher:
    def __init__(self, persons: PersonRepository) -> None:
        self._persons = persons

    def match(self, staged: Sequence[StagingPerson]) -> list[PersonMatch]:
        matches: list[PersonMatch] = []
        for person in staged:
            matches.extend(self._match_authoritative(person))
        matches.extend(self._match_within_batch(staged))
        result = keep_best(matches)
        log.info(
            "Person matching complete: %s scanned, %s matches found", len(staged), len(result)
        )
        return result

    def _match_authoritative(self, staged: StagingPerson) -> list[PersonMatch]:
        candidates: dict[UUID, Person] = {}
        if staged.national_id and staged.national_id.strip():
            exact = self._persons.find_by_national_id(staged.national_id.strip())
            if exact is not None:
                candidates[exact.id] = exact
        if staged.family_name_arabic:
            for candidate in self._persons.search_by_family_name(staged.family_name_arabic):
                candidates.setdefault(candidate.id, candidate)

        found: list[PersonMatch] = []
        for candidate in candidates.values():
            match = _build_match(
                staged,
                EntityRef(staged.original_entity_id, EntitySide.STAGING, staged.identifier),
                candidate,
                EntityRef(candidate.id, EntitySide.AUTHORITATIVE, candidate.identifier),
            )
            if match is not None:
                log.debug(
                    "Person match (%s): staging %s <-> registry %s",
                    match.score,
                    staged.original_entity_id,
                    candidate.id,
                )
                found.append(match)
        return found

    @staticmethod
    def _match_within_batch(staged: Sequence[StagingPerson]) -> list[PersonMatch]:
        found: list[PersonMatch] = []
        for index, first in enumerate(staged):
            for second in staged[index + 1 :]:
                match = _build_match(
                    first,
                    EntityRef(first.original_entity_id, EntitySide.STAGING, first.identifier),
                    second,
                    EntityRef(second.original_entity_id, EntitySide.STAGING, second.identifier),
                )
                if match is not None:
                    found.append(match)
        return found


def _build_match(
    first: PersonAttributes,
    first_ref: EntityRef,
    second: PersonAttributes,
    second_ref: EntityRef,
) -> PersonMatch | None:
    scored = score_persons(first, second)
    confidence = confidence_for(scored.score)
    if confidence is None:
        return None
    return PersonMatch(
        first=first_ref,
        second=second_ref,
        score=scored.score,
        confidence=confidence,
        criteria=scored.criteria(),
        national_id_matched=scored.national_id_matched,
    )
