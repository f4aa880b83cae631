"""Database package for ledger ORM models, engine setup and migrations."""

from __future__ import annotations

import logging

from ledger_backend.db.base import Base
from ledger_backend.db import models
from ledger_backend.db.engine import create_ledger_engine, supports_row_locking

logger = logging.getLogger(__name__)

__all__ = ["Base", "create_ledger_engine", "models", "supports_row_locking"]
