"""Level 10: composite building codes are numeric and unique within the batch.

Duplicate property units inside one building are left to duplicate detection,
which turns them into reviewable conflicts instead of invalid records.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from tenure_reconcile.domain.model import StagedBatch, StagingBuilding

    from .contracts import Findings


def _is_numeric(code: str) -> bool:
    return code.isascii() and code.isdigit()


def check_building_codes(batch: StagedBatch) -> Findings:
    builder = FindingsBuilder()
    by_code: dict[str, list[StagingBuilding]] = defaultdict(list)
    for building in batch.buildings:
        # missing or short parts are reported by the field level
        code = building.building_code
        if code is None:
            continue
        if not _is_numeric(code):
            builder.error(
                building, f"Composite building code '{code}' contains non-digit characters"
            )
        by_code[code].append(building)

    for code, buildings in by_code.items():
        if len(buildings) < 2:
            continue
        for building in buildings:
            builder.error(
                building, f"Duplicate building code '{code}' found {len(buildings)} times in batch"
            )
    return builder.build()
