"""
ledger_services.ledger_service -- Per-profile vendor ledger.

Responsibility:
    Loads the documents of one invoice profile, builds its chronological
    ledger with running balance, and lists every profile with its
    outstanding balance for the profile picker.

Architecture position:
    Services -- read-side orchestration over ``EntrySource`` and the pure
    ``build_ledger`` / ``profile_overview`` engines.

Invariants enforced:
    - Running balances are those of the full profile ledger; a
      ``LedgerFilter`` only hides rows.
    - Archived invoices stay in the ledger (it is a history), but are
      excluded from the profile overview.

Failure modes:
    - ProfileNotFoundError: a profile id with no documents at all.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerConfig, get_active_config
from ledger_engines.ledger import (
    LedgerFilter,
    LedgerResult,
    ProfileBalance,
    build_ledger,
    profile_overview,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import ProfileNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.entry_source import EntrySource

logger = get_logger("services.ledger")


class LedgerService:
    """Profile ledger reads."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
    ):
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._entries = EntrySource(session, self._config)

    def get_ledger(
        self,
        profile_id: UUID | None,
        ledger_filter: LedgerFilter | None = None,
    ) -> LedgerResult:
        """
        Ledger of one profile; ``None`` is the ledger of profile-less documents.

        Raises:
            ProfileNotFoundError: ``profile_id`` matches no document.
        """
        with LogContext.bind(profile_id=str(profile_id) if profile_id else None):
            stream = self._entries.load(as_of=self._clock.today(), profile_id=profile_id)
            if profile_id is not None and not any(
                e.profile_id == profile_id for e in stream.entries
            ):
                raise ProfileNotFoundError(str(profile_id))

            engine = self._config.engine
            result = build_ledger(
                profile_id,
                stream.entries,
                ledger_filter,
                places=engine.currency_places,
                rounding=engine.decimal_rounding,
            )
            if stream.normalized.has_failures:
                result = replace(
                    result, failures=stream.normalized.failures + result.failures
                )
            return result

    def profiles(self) -> tuple[ProfileBalance, ...]:
        """Every profile with its outstanding balance, by profile name."""
        stream = self._entries.load(as_of=self._clock.today())
        return profile_overview(stream.entries)
