"""Double-entry ledger engine."""

from __future__ import annotations

from double_entry.account import Account
from double_entry.balance_store import BalanceStore
from double_entry.config import (
    AccountDefinition,
    LedgerConfig,
    LedgerSettings,
    build_ledger_config,
    load_ledger_config,
    load_ledger_settings,
)
from double_entry.errors import (
    AccountNotFoundError,
    DuplicateAccountError,
    GuardError,
    InsufficientBalanceError,
    InvalidScopeError,
    LedgerError,
    LockContentionError,
    MismatchedCurrenciesError,
    PositiveAmountOnlyError,
    SameAccountTransferError,
    UndefinedAccountError,
    UndefinedTransferCodeError,
    UndefinedTransferPairError,
)
from double_entry.ledger import Ledger
from double_entry.money import CurrencyMismatchError, Money
from double_entry.retry import retry_on_lock_contention
from double_entry.transfer import (
    Transfer,
    TransferResult,
    TransferState,
    execute_transfer,
    perform_transfer,
)

__all__ = [
    "Account",
    "AccountDefinition",
    "AccountNotFoundError",
    "BalanceStore",
    "CurrencyMismatchError",
    "DuplicateAccountError",
    "GuardError",
    "InsufficientBalanceError",
    "InvalidScopeError",
    "Ledger",
    "LedgerConfig",
    "LedgerError",
    "LedgerSettings",
    "LockContentionError",
    "MismatchedCurrenciesError",
    "Money",
    "PositiveAmountOnlyError",
    "SameAccountTransferError",
    "Transfer",
    "TransferResult",
    "TransferState",
    "UndefinedAccountError",
    "UndefinedTransferCodeError",
    "UndefinedTransferPairError",
    "build_ledger_config",
    "execute_transfer",
    "load_ledger_config",
    "load_ledger_settings",
    "perform_transfer",
    "retry_on_lock_contention",
]
