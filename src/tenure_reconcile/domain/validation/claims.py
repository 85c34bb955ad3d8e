"""Level 7: imported claims must still be field drafts (warnings only)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenure_reconcile.domain.model import is_blank
from tenure_reconcile.domain.model.attributes import (
    FIELD_CLAIM_SOURCE,
    IMPORTED_CLAIM_STATUS,
    IMPORTED_LIFECYCLE_STAGE,
)

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from tenure_reconcile.domain.model import StagedBatch

    from .contracts import Findings


def _normalized(value: str | None) -> str | None:
    if value is None or is_blank(value):
        return None
    return value.strip().lower()


def check_claim_lifecycle(batch: StagedBatch) -> Findings:
    builder = FindingsBuilder()
    for claim in batch.claims:
        stage = _normalized(claim.lifecycle_stage)
        if stage is not None and stage != IMPORTED_LIFECYCLE_STAGE:
            builder.warning(
                claim,
                f"Imported claim has LifecycleStage={claim.lifecycle_stage}; expected "
                f"{IMPORTED_LIFECYCLE_STAGE} (will be set to submitted on commit)",
            )

        status = _normalized(claim.claim_status)
        if status is not None and status != IMPORTED_CLAIM_STATUS:
            builder.warning(
                claim,
                f"Imported claim has Status={claim.claim_status}; expected "
                f"{IMPORTED_CLAIM_STATUS} (will be set to submitted on commit)",
            )

        source = _normalized(claim.claim_source)
        if source is not None and source != FIELD_CLAIM_SOURCE:
            builder.warning(
                claim,
                f"ClaimSource={claim.claim_source}; expected {FIELD_CLAIM_SOURCE} "
                "for tablet import",
            )
    return builder.build()
