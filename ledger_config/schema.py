"""
Configuration schema (``ledger_config.schema``).

Frozen dataclasses produced by ``ledger_config.loader`` from YAML.  The
runtime never sees raw dicts; services translate these into the plain
tuples and enums the kernel accepts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP

from ledger_kernel.domain.documents import ActorRole
from ledger_kernel.domain.entries import EntryKind
from ledger_kernel.domain.report_period import ReportAction
from ledger_kernel.domain.values import DEFAULT_CURRENCY

ROUNDING_MODES: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}


@dataclass(frozen=True)
class EngineSettings:
    currency_places: int = 2
    rounding_mode: str = "half_up"
    default_currency: str = DEFAULT_CURRENCY

    @property
    def decimal_rounding(self) -> str:
        """The ``decimal`` module constant for ``rounding_mode``."""
        return ROUNDING_MODES[self.rounding_mode]


@dataclass(frozen=True)
class ReportSettings:
    unpaid_section_label: str = "Unpaid"
    snapshot_version: int = 1


@dataclass(frozen=True)
class FeedSettings:
    """
    ``pending_action_statuses`` maps each entry kind to the raw statuses
    the composite "pending actions" filter value stands for.
    """

    pending_action_statuses: dict[EntryKind, frozenset[str]] = field(default_factory=dict)
    default_page_size: int = 25
    max_page_size: int = 100


@dataclass(frozen=True)
class RoleSettings:
    finalize: tuple[ActorRole, ...] = (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)
    submit: tuple[ActorRole, ...] = (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)
    unfinalize: tuple[ActorRole, ...] = (ActorRole.SUPER_ADMIN,)
    approve: tuple[ActorRole, ...] = (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)
    archive: tuple[ActorRole, ...] = (ActorRole.ADMIN, ActorRole.SUPER_ADMIN)

    def report_action_roles(self) -> dict[ReportAction, tuple[ActorRole, ...]]:
        return {
            ReportAction.FINALIZE: self.finalize,
            ReportAction.SUBMIT: self.submit,
            ReportAction.UNFINALIZE: self.unfinalize,
        }


@dataclass(frozen=True)
class LedgerConfig:
    """The single runtime configuration artifact."""

    config_id: str
    version: int
    engine: EngineSettings
    report: ReportSettings
    feed: FeedSettings
    roles: RoleSettings
    checksum: str
    source: str | None = None
