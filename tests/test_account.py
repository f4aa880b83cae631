"""Tests for account value objects and their persistence helpers."""

from __future__ import annotations

import pytest

from double_entry.account import Account, from_row, lookup, make, present, storage_scope
from double_entry.errors import DuplicateAccountError, InvalidScopeError, UndefinedAccountError
from double_entry.money import Money
from ledger_backend.db.models import AccountBalance


def test_storage_scope_maps_none_to_empty_and_rejects_empty() -> None:
    assert storage_scope(None) == ""
    assert storage_scope("user:1") == "user:1"
    with pytest.raises(InvalidScopeError, match="empty string not allowed"):
        storage_scope("")


def test_account_validates_and_normalizes() -> None:
    account = Account(identifier="checking", currency="usd")
    assert account.currency == "USD"
    assert account.lock_key == ("", "USD", "checking")
    assert account.balance_or_zero() == Money(0, "USD")

    with pytest.raises(InvalidScopeError):
        Account(identifier="checking", currency="USD", scope="")
    with pytest.raises(ValueError, match="Invalid account identifier"):
        Account(identifier=" ", currency="USD")


def test_account_coerce_accepts_mappings() -> None:
    account = Account.coerce({"identifier": "wallet", "currency": "USD", "scope": "user:1", "balance": 7})
    assert account.balance == Money(7, "USD")
    assert account.lock_key == ("user:1", "USD", "wallet")
    assert Account.coerce(account) is account
    with pytest.raises(TypeError):
        Account.coerce("wallet")  # type: ignore[arg-type]


def test_present_builds_account_from_row(ledger_config) -> None:
    row = AccountBalance(id=3, identifier="checking", currency="USD", scope="", balance_amount=42)
    account = present(row, ledger_config)
    assert account == Account(
        id=3,
        identifier="checking",
        currency="USD",
        scope=None,
        balance=Money(42, "USD"),
        positive_only=True,
    )
    assert present(None, ledger_config) is None
    assert from_row(row, ledger_config).scope is None


def test_make_creates_zero_balance_account(store, ledger_config) -> None:
    account = make(store, ledger_config, "checking")
    assert account.id is not None
    assert account.currency == "USD"
    assert account.scope is None
    assert account.balance == Money(0, "USD")
    assert account.positive_only is True

    savings = make(store, ledger_config, "savings", currency="aud", scope="user:1")
    assert savings.currency == "AUD"
    assert savings.scope == "user:1"
    assert savings.positive_only is False


def test_make_rejects_duplicates(store, ledger_config) -> None:
    make(store, ledger_config, "savings")
    with pytest.raises(DuplicateAccountError):
        make(store, ledger_config, "savings")

    # Same identifier under another currency or scope is a different account.
    make(store, ledger_config, "savings", currency="EUR")
    make(store, ledger_config, "savings", scope="user:1")


def test_make_rejects_unconfigured_identifier(store, ledger_config) -> None:
    with pytest.raises(UndefinedAccountError):
        make(store, ledger_config, "mystery")
    assert lookup(store, ledger_config, "mystery") is None


def test_lookup_never_creates(store, ledger_config) -> None:
    assert lookup(store, ledger_config, "checking") is None
    with store.transaction() as session:
        assert session.query(AccountBalance).count() == 0

    created = make(store, ledger_config, "checking", scope="user:9")
    assert lookup(store, ledger_config, "checking") is None
    found = lookup(store, ledger_config, "checking", scope="user:9")
    assert found == created
    assert lookup(store, ledger_config, "checking", currency="EUR", scope="user:9") is None
