"""Identity and time helpers shared by the domain model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from collections.abc import Iterable

NIL_ID = UUID(int=0)


def new_id() -> UUID:
    return uuid4()


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def present_id(value: UUID | None) -> UUID | None:
    """Return ``value`` unless it is missing or the all-zero placeholder devices emit."""

    if value is None or value == NIL_ID:
        return None
    return value


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def append_all(existing: Iterable[str], additions: Iterable[str]) -> list[str]:
    """Return a new list with ``additions`` appended; ``existing`` is left untouched."""

    return [*existing, *additions]
