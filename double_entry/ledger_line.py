"""Append-only ledger line creation and partner linking."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from double_entry.account import Account, storage_scope
from double_entry.money import Money
from ledger_backend.db.models import LedgerLine

logger = logging.getLogger(__name__)


def insert_line(
    session: Session,
    money: Money,
    *,
    account: Account,
    partner: Account,
    code: str,
    metadata: Optional[Mapping[str, Any]] = None,
) -> LedgerLine:
    """Persist one signed line for ``account`` and return it with its id.

    ``account`` must carry its balance row id and the balance it had before
    this line; the stored ``balance_amount`` is the balance after it.
    """
    if account.id is None:
        raise ValueError(f"Account {account.identifier!r} has no balance row id")
    line = LedgerLine(
        account_identifier=account.identifier,
        account_scope=storage_scope(account.scope),
        currency=money.currency,
        amount=money.amount,
        balance_amount=(account.balance_or_zero() + money).amount,
        code=code,
        partner_identifier=partner.identifier,
        partner_scope=storage_scope(partner.scope),
        line_metadata=dict(metadata) if metadata is not None else None,
        account_balance_id=account.id,
    )
    session.add(line)
    session.flush()
    return line


def link_partner(session: Session, line: LedgerLine, partner_line_id: int) -> LedgerLine:
    """Back-fill ``partner_line_id``; allowed exactly once per line."""
    if line.partner_line_id is not None:
        raise ValueError(f"Ledger line {line.id} is already linked to {line.partner_line_id}")
    line.partner_line_id = partner_line_id
    session.flush()
    return line
