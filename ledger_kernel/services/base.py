"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and session-handling contract.  Services receive a
    SQLAlchemy ``Session`` and use ``session.flush()``, never
    ``session.commit()``: the caller owns the transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Reads belong in
    ``ledger_kernel/selectors/``.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """Abstract base class for all kernel services."""

    def __init__(self, session: Session):
        self.session = session
