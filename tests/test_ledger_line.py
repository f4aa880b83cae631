"""Tests for ledger line insertion and partner linking."""

from __future__ import annotations

import pytest

from double_entry.account import Account, from_row
from double_entry.ledger_line import insert_line, link_partner
from double_entry.money import Money


def test_insert_line_records_post_line_balance(store, ledger_config) -> None:
    with store.transaction() as session:
        source = from_row(store.create(session, Account(identifier="cash", currency="USD")), ledger_config)
        target = from_row(
            store.create(session, Account(identifier="savings", currency="USD", scope="user:1")),
            ledger_config,
        )
        source = Account(
            id=source.id,
            identifier=source.identifier,
            currency=source.currency,
            balance=Money(10, "USD"),
        )

        line = insert_line(
            session,
            Money(-4, "USD"),
            account=source,
            partner=target,
            code="deposit",
            metadata={"reference": "r-1"},
        )
        assert line.id is not None
        assert line.amount == -4
        assert line.balance_amount == 6
        assert line.account_scope == ""
        assert line.partner_identifier == "savings"
        assert line.partner_scope == "user:1"
        assert line.line_metadata == {"reference": "r-1"}
        assert line.account_balance_id == source.id
        assert line.partner_line_id is None


def test_insert_line_requires_persisted_account(store) -> None:
    with store.transaction() as session:
        with pytest.raises(ValueError, match="no balance row id"):
            insert_line(
                session,
                Money(1, "USD"),
                account=Account(identifier="cash", currency="USD"),
                partner=Account(identifier="savings", currency="USD"),
                code="deposit",
            )


def test_link_partner_is_one_time(store, ledger_config) -> None:
    with store.transaction() as session:
        cash = from_row(store.create(session, Account(identifier="cash", currency="USD")), ledger_config)
        savings = from_row(store.create(session, Account(identifier="savings", currency="USD")), ledger_config)
        debit = insert_line(session, Money(-1, "USD"), account=cash, partner=savings, code="deposit")
        credit = insert_line(session, Money(1, "USD"), account=savings, partner=cash, code="deposit")

        link_partner(session, debit, credit.id)
        link_partner(session, credit, debit.id)
        assert debit.partner_line_id == credit.id
        assert credit.partner_line_id == debit.id

        with pytest.raises(ValueError, match="already linked"):
            link_partner(session, debit, credit.id)
