"""
Module: ledger_kernel.models.archive_request
Responsibility: Queued bulk-archive requests raised by non-admin users,
    awaiting an admin decision.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class ArchiveRequestModel(TrackedBase):
    __tablename__ = "archive_requests"

    requested_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_ids: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default="pending_approval", nullable=False
    )
