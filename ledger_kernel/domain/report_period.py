"""
Report period lifecycle (``ledger_kernel.domain.report_period``).

Responsibility
--------------
Pure state machine for a reporting period plus the snapshot envelope that
finalize freezes.  Persistence and locking live in
``ledger_kernel.services.report_period_service``; this module only answers
"from this status, may this action run, and where does it lead?".

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.

Invariants enforced
-------------------
* ``REPORT_TRANSITIONS`` is the only source of valid transitions::

      draft --finalize--> finalized --submit--> submitted
        ^                    |
        +----unfinalize------+

* ``submitted`` is terminal: nothing leaves it.
* A rejected transition raises a named ``StateConflictError`` subclass and
  never changes state.
* Role checks happen before the state check so an unauthorized caller
  learns nothing about the period's status.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from ledger_kernel.domain.documents import Actor, ActorRole
from ledger_kernel.domain.report import MonthlyReport
from ledger_kernel.exceptions import (
    ReportAlreadyFinalizedError,
    ReportAlreadySubmittedError,
    ReportNotFinalizedError,
    ReportPermissionError,
)
from ledger_kernel.utils.hashing import hash_payload

SNAPSHOT_VERSION = 1


class ReportStatus(str, Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"
    SUBMITTED = "submitted"


class ReportAction(str, Enum):
    FINALIZE = "finalize"
    SUBMIT = "submit"
    UNFINALIZE = "unfinalize"


REPORT_TRANSITIONS: dict[tuple[ReportStatus, ReportAction], ReportStatus] = {
    (ReportStatus.DRAFT, ReportAction.FINALIZE): ReportStatus.FINALIZED,
    (ReportStatus.FINALIZED, ReportAction.SUBMIT): ReportStatus.SUBMITTED,
    (ReportStatus.FINALIZED, ReportAction.UNFINALIZE): ReportStatus.DRAFT,
}

TERMINAL_REPORT_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.SUBMITTED,
})

DEFAULT_ACTION_ROLES: dict[ReportAction, tuple[ActorRole, ...]] = {
    ReportAction.FINALIZE: (ActorRole.ADMIN, ActorRole.SUPER_ADMIN),
    ReportAction.SUBMIT: (ActorRole.ADMIN, ActorRole.SUPER_ADMIN),
    ReportAction.UNFINALIZE: (ActorRole.SUPER_ADMIN,),
}


def resolve_transition(
    current: ReportStatus,
    action: ReportAction,
    period_label: str,
) -> ReportStatus:
    """
    Return the status ``action`` leads to from ``current``.

    Raises:
        ReportAlreadyFinalizedError: finalize from finalized or submitted.
        ReportNotFinalizedError: submit or unfinalize from draft.
        ReportAlreadySubmittedError: submit or unfinalize from submitted.
    """
    target = REPORT_TRANSITIONS.get((current, action))
    if target is not None:
        return target

    if action == ReportAction.FINALIZE:
        raise ReportAlreadyFinalizedError(period_label, current.value)
    if current == ReportStatus.SUBMITTED:
        raise ReportAlreadySubmittedError(period_label, action.value)
    raise ReportNotFinalizedError(period_label, action.value)


def check_permission(
    action: ReportAction,
    actor: Actor,
    action_roles: dict[ReportAction, tuple[ActorRole, ...]] | None = None,
) -> None:
    """Raise ``ReportPermissionError`` unless ``actor`` may run ``action``."""
    allowed = (action_roles or DEFAULT_ACTION_ROLES)[action]
    if actor.role not in allowed:
        raise ReportPermissionError(
            operation=action.value,
            actor_role=actor.role.value,
            required_roles=tuple(r.value for r in allowed),
        )


@dataclass(frozen=True)
class ReportSnapshot:
    """
    The frozen report stored on a finalized period.

    ``checksum`` is the SHA-256 of the canonical payload taken at finalize
    time; loaders recompute and compare it.
    """

    version: int
    report: MonthlyReport
    finalized_at: datetime
    finalized_by_name: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "report_data": self.report.to_payload(),
            "finalized_at": self.finalized_at.isoformat(),
            "finalized_by_name": self.finalized_by_name,
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReportSnapshot:
        return cls(
            version=int(data["version"]),
            report=MonthlyReport.from_payload(data["report_data"]),
            finalized_at=datetime.fromisoformat(data["finalized_at"]),
            finalized_by_name=data["finalized_by_name"],
        )

    @property
    def checksum(self) -> str:
        return hash_payload(self.to_payload())


@dataclass(frozen=True)
class ReportPeriodInfo:
    """Read model of a persisted report period."""

    id: UUID
    month: int
    year: int
    status: ReportStatus
    finalized_at: datetime | None = None
    finalized_by_id: UUID | None = None
    submitted_at: datetime | None = None
    submitted_to: str | None = None
    notes: str | None = None
    has_snapshot: bool = False

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REPORT_STATUSES
