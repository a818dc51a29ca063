"""
Module: ledger_kernel.models.report_period
Responsibility: ORM persistence for monthly report periods and their frozen
    snapshots.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (month, year) (uq_report_period_month_year); rows are
      created lazily in ``draft``.
    - ``snapshot`` and ``snapshot_checksum`` are written together at finalize
      and cleared together at unfinalize; submit touches neither.

Failure modes:
    - IntegrityError when two callers race to create the same period; the
      service retries the lookup.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class ReportPeriodModel(TrackedBase):
    __tablename__ = "report_periods"

    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_report_period_month_year"),
    )

    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)

    snapshot: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    snapshot_checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)

    finalized_at: Mapped[datetime | None] = mapped_column(nullable=True)
    finalized_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    submitted_to: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ReportPeriod {self.year:04d}-{self.month:02d}: {self.status}>"
