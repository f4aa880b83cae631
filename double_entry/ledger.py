"""Public facade binding a balance store to a ledger configuration."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar, Union

from sqlalchemy.orm import Session

from double_entry import account as account_ops
from double_entry.account import Account
from double_entry.balance_store import BalanceStore
from double_entry.config import LedgerConfig, LedgerSettings
from double_entry.retry import retry_on_lock_contention
from double_entry.transfer import Transfer, TransferResult, execute_transfer, perform_transfer
from ledger_backend.db.engine import create_ledger_engine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Ledger:
    """Entry point for account and transfer operations.

    A ``Ledger`` holds only the store and the immutable configuration, so one
    instance may be shared across threads; each call opens its own session.
    """

    def __init__(self, store: BalanceStore, config: LedgerConfig) -> None:
        self.store = store
        self.config = config

    @classmethod
    def from_url(cls, url: str, config: LedgerConfig, **engine_kwargs: Any) -> "Ledger":
        return cls(BalanceStore(create_ledger_engine(url, **engine_kwargs)), config)

    @classmethod
    def from_settings(cls, settings: LedgerSettings, config: LedgerConfig) -> "Ledger":
        """Build a ledger from environment-backed runtime settings."""
        return cls.from_url(
            settings.database_url,
            config,
            echo=settings.db_echo,
            sqlite_busy_timeout=settings.sqlite_busy_timeout_seconds,
        )

    def make_account(
        self,
        identifier: str,
        *,
        currency: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> Account:
        return account_ops.make(self.store, self.config, identifier, currency=currency, scope=scope)

    def lookup_account(
        self,
        identifier: str,
        *,
        currency: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> Optional[Account]:
        return account_ops.lookup(self.store, self.config, identifier, currency=currency, scope=scope)

    def lock_accounts(self, accounts: Sequence[Account], fn: Callable[[Session], T]) -> T:
        """Run ``fn`` with every account in ``accounts`` locked in one transaction."""
        return self.store.lock_multi(accounts, fn)

    def transfer(
        self,
        value: Union[Transfer, Mapping[str, Any]],
        *,
        ensure_accounts: bool = True,
    ) -> TransferResult:
        """Execute a transfer, raising its ``LedgerError`` on failure."""
        return perform_transfer(value, store=self.store, config=self.config, ensure_accounts=ensure_accounts)

    def attempt_transfer(
        self,
        value: Union[Transfer, Mapping[str, Any]],
        *,
        ensure_accounts: bool = True,
    ) -> TransferResult:
        """Execute a transfer and report failures in the returned result."""
        return execute_transfer(value, store=self.store, config=self.config, ensure_accounts=ensure_accounts)

    def transfer_with_retry(
        self,
        value: Union[Transfer, Mapping[str, Any]],
        *,
        settings: LedgerSettings,
        ensure_accounts: bool = True,
    ) -> TransferResult:
        """Like ``transfer`` but retries lock contention per ``settings``."""
        return retry_on_lock_contention(
            lambda: self.transfer(value, ensure_accounts=ensure_accounts),
            attempts=settings.lock_retry_attempts,
            backoff_seconds=settings.lock_retry_backoff_seconds,
        )
