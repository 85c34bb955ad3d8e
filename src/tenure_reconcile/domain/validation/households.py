"""Level 4: household composition consistency (warnings only)."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from tenure_reconcile.domain.model import present_id

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from tenure_reconcile.domain.model import StagedBatch

    from .contracts import Findings


def check_household_structure(batch: StagedBatch) -> Findings:
    builder = FindingsBuilder()
    person_ids = {person.original_entity_id for person in batch.persons}
    members = Counter(
        household_id
        for person in batch.persons
        if (household_id := present_id(person.original_household_id)) is not None
    )

    for household in batch.households:
        size = household.household_size or 0
        male = household.male_count or 0
        female = household.female_count or 0
        if male + female > 0 and male + female != size:
            builder.warning(
                household,
                f"MaleCount({male}) + FemaleCount({female}) = {male + female} "
                f"does not equal HouseholdSize({size})",
            )

        head_id = present_id(household.original_head_of_household_person_id)
        if head_id is not None and head_id not in person_ids:
            builder.warning(household, f"Head of household person {head_id} not found in batch")

        linked = members.get(household.original_entity_id, 0)
        if linked and linked != size:
            builder.warning(
                household, f"Declared HouseholdSize={size} but {linked} persons linked"
            )
    return builder.build()
