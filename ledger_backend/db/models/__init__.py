"""Model module imports for SQLAlchemy metadata registration."""

from __future__ import annotations

import logging

from ledger_backend.db.models.account_balance import AccountBalance
from ledger_backend.db.models.ledger_line import LedgerLine

logger = logging.getLogger(__name__)

__all__ = [
    "AccountBalance",
    "LedgerLine",
]
