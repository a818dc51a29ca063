"""
Command results for mutation operations.

Mutations never raise for business failures; they return one of these
values and the caller decides what to refresh.  There is no shared cache
to invalidate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a single-document mutation.

    ``already_applied`` is True when the requested state was already in
    place (approving an approved document); the call still succeeds.
    """

    success: bool
    error: str | None = None
    error_code: str | None = None
    already_applied: bool = False

    @classmethod
    def ok(cls, already_applied: bool = False) -> MutationResult:
        return cls(success=True, already_applied=already_applied)

    @classmethod
    def failure(cls, error: str, code: str | None = None) -> MutationResult:
        return cls(success=False, error=error, error_code=code)


@dataclass(frozen=True)
class ItemError:
    """Why one item of a bulk operation failed."""

    item_id: UUID
    code: str
    message: str


@dataclass(frozen=True)
class BulkOperationResult:
    """Per-item outcome of a bulk operation; partial failure is expected."""

    succeeded: int
    failed: int
    succeeded_ids: tuple[UUID, ...] = ()
    errors: tuple[ItemError, ...] = field(default_factory=tuple)

    @property
    def failed_ids(self) -> tuple[UUID, ...]:
        return tuple(e.item_id for e in self.errors)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


@dataclass(frozen=True)
class BulkArchiveOutcome:
    """
    Either the archive ran (``result``) or it was queued for an admin
    (``pending_request_id``).  Exactly one is set.
    """

    result: BulkOperationResult | None = None
    pending_request_id: UUID | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.pending_request_id is None):
            raise ValueError(
                "BulkArchiveOutcome requires exactly one of result or pending_request_id"
            )

    @property
    def archived_count(self) -> int:
        return self.result.succeeded if self.result is not None else 0
