"""Append-only ledger line model definitions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    PrimaryKeyConstraint,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ledger_backend.db.base import Base
from ledger_backend.db.models.account_balance import ID_TYPE, utc_now

logger = logging.getLogger(__name__)

METADATA_TYPE = JSON().with_variant(JSONB(), "postgresql")


class LedgerLine(Base):
    """One side of a double-entry transfer.

    Lines are never updated after insertion except for the single back-fill of
    ``partner_line_id``, which can only be known once the partner row exists.
    """

    __tablename__ = "ledger_line"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_ledger_line"),
        Index(
            "idx_ledger_line_code_account_currency_inserted_at",
            "code",
            "account_identifier",
            "currency",
            "inserted_at",
        ),
        Index(
            "idx_ledger_line_scope_account_currency_inserted_at",
            "account_scope",
            "account_identifier",
            "currency",
            "inserted_at",
        ),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    account_identifier: Mapped[str] = mapped_column(Text, nullable=False)
    account_scope: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )
    currency: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    partner_identifier: Mapped[str] = mapped_column(Text, nullable=False)
    partner_scope: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )
    # "metadata" is reserved on declarative classes.
    line_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        METADATA_TYPE,
        nullable=True,
    )
    partner_line_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("ledger_line.id", name="fk_ledger_line_partner_line"),
        nullable=True,
    )
    account_balance_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("account_balance.id", name="fk_ledger_line_account_balance"),
        nullable=False,
    )
    inserted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerLine(id={self.id}, account={self.account_identifier!r}, "
            f"amount={self.amount}, code={self.code!r}, partner_line_id={self.partner_line_id})>"
        )
