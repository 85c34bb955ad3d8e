"""Error taxonomy for the reconciliation workflow."""

from __future__ import annotations


class ReconciliationError(RuntimeError):
    """Base class for workflow failures that callers are expected to handle."""


class NotFoundError(ReconciliationError):
    """Raised when a package, conflict or record cannot be located."""


class StateConflictError(ReconciliationError):
    """Raised when an operation targets a package or conflict in the wrong state."""


class ConcurrentModificationError(ReconciliationError):
    """Raised when an optimistic version token no longer matches the stored row."""


class MergeError(ReconciliationError):
    """Raised when a merge service reports failure for a conflict."""


class ValidationError(ReconciliationError, ValueError):
    """Raised for invalid arguments passed to domain operations."""
