"""Typed merge dispatch keyed by entity kind."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from tenure_reconcile.domain.errors import MergeError

from .person import PersonMergeService
from .property import PropertyUnitMergeService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tenure_reconcile.domain.model import EntityKind

    from .contracts import MergeService, MergeServiceTable


def build_merge_table(services: Iterable[MergeService] | None = None) -> MergeServiceTable:
    """Freeze one service per kind; a repeated kind is a wiring mistake."""

    if services is None:
        services = (PersonMergeService(), PropertyUnitMergeService())
    table: dict[EntityKind, MergeService] = {}
    for service in services:
        if service.kind in table:
            raise ValueError(f"Duplicate merge service registered for {service.kind}")
        table[service.kind] = service
    return MappingProxyType(table)


def merge_service_for(table: MergeServiceTable, kind: EntityKind) -> MergeService:
    try:
        return table[kind]
    except KeyError:
        raise MergeError(f"No merge service registered for {kind}") from None
