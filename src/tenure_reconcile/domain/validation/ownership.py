"""Level 3: ownership relations should be backed by evidence."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenure_reconcile.domain.model import RelationType, is_blank, present_id

from .contracts import FindingsBuilder

if TYPE_CHECKING:
    from tenure_reconcile.domain.model import StagedBatch

    from .contracts import Findings

OWNERSHIP_RELATION_TYPES = frozenset({RelationType.OWNER, RelationType.CO_OWNER})


def check_ownership_evidence(batch: StagedBatch) -> Findings:
    builder = FindingsBuilder()
    evidenced = {
        relation_id
        for evidence in batch.evidences
        if (relation_id := present_id(evidence.original_relation_id)) is not None
    }
    for relation in batch.relations:
        if relation.relation_type not in OWNERSHIP_RELATION_TYPES:
            continue
        if relation.original_entity_id not in evidenced:
            builder.warning(relation, "Ownership relation has no supporting evidence documents")
    for evidence in batch.evidences:
        if is_blank(evidence.file_path):
            builder.warning(evidence, "Evidence record has empty file path")
    return builder.build()
