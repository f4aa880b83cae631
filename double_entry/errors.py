"""Error taxonomy for ledger operations.

Every error carries a stable ``code`` tag so callers of the non-raising entry
points can branch on the failure without matching on message text.
"""

from __future__ import annotations


class LedgerError(RuntimeError):
    """Base class for expected ledger failures."""

    code: str = "ledger_error"
    default_message: str = "Ledger operation failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class GuardError(LedgerError):
    """A proposed transfer was rejected before any mutation."""

    code = "guard_error"


class PositiveAmountOnlyError(GuardError):
    code = "positive_amount_only"
    default_message = "Transfer amount must be positive."


class UndefinedTransferCodeError(GuardError):
    code = "undefined_transfer_code"
    default_message = "Transfer code is undefined."


class UndefinedTransferPairError(GuardError):
    code = "undefined_transfer_pair"
    default_message = "Transfer pair is undefined for this code."


class MismatchedCurrenciesError(GuardError):
    code = "mismatched_currencies"
    default_message = "Transfer and account currencies do not match."


class InsufficientBalanceError(GuardError):
    code = "insufficient_balance"
    default_message = "Insufficient balance on a positive-only account."


class SameAccountTransferError(GuardError):
    code = "same_account"
    default_message = "Cannot transfer between an account and itself."


class AccountNotFoundError(LedgerError):
    code = "account_not_found"
    default_message = "Account not found."


class InvalidScopeError(LedgerError):
    code = "invalid_scope"
    default_message = "Invalid scope: empty string not allowed."


class DuplicateAccountError(LedgerError):
    code = "duplicate_account"
    default_message = "Account already exists."


class UndefinedAccountError(LedgerError):
    code = "undefined_account"
    default_message = "Account identifier is not configured."


class LockContentionError(LedgerError):
    code = "lock_contention"
    default_message = "Could not acquire account lock."


GUARD_ERRORS: dict[str, type[GuardError]] = {
    cls.code: cls
    for cls in (
        PositiveAmountOnlyError,
        UndefinedTransferCodeError,
        UndefinedTransferPairError,
        MismatchedCurrenciesError,
        InsufficientBalanceError,
        SameAccountTransferError,
    )
}


def guard_error_for(reason_code: str, detail: str) -> GuardError:
    """Build the exception matching a guard reason code."""
    error_cls = GUARD_ERRORS.get(reason_code, GuardError)
    return error_cls(detail or None)
