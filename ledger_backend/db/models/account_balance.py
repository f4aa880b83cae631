"""Persisted account balance model definitions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    DateTime,
    Integer,
    PrimaryKeyConstraint,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_backend.db.base import Base

logger = logging.getLogger(__name__)

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


def utc_now() -> datetime:
    """Return the current timestamp in UTC."""
    return datetime.now(tz=timezone.utc)


class AccountBalance(Base):
    """Authoritative running balance for one (scope, currency, identifier)."""

    __tablename__ = "account_balance"
    __table_args__ = (
        PrimaryKeyConstraint("id", name="pk_account_balance"),
        UniqueConstraint(
            "scope",
            "currency",
            "identifier",
            name="uq_account_balance_scope_currency_identifier",
        ),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    identifier: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(Text, nullable=False)
    scope: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )
    balance_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
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
            f"<AccountBalance(id={self.id}, identifier={self.identifier!r}, "
            f"scope={self.scope!r}, currency={self.currency!r}, balance_amount={self.balance_amount})>"
        )
