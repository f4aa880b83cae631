"""Pure validation pipeline for proposed transfers.

Each check returns the transfer when it passes or a ``GuardViolation`` when it
does not. ``validate_transfer`` applies them in a fixed order and stops at the
first violation; none of them touch the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Union

from double_entry.config import LedgerConfig
from double_entry.errors import GuardError, guard_error_for

if TYPE_CHECKING:
    from double_entry.transfer import Transfer


POSITIVE_AMOUNT_ONLY = "positive_amount_only"
UNDEFINED_TRANSFER_CODE = "undefined_transfer_code"
UNDEFINED_TRANSFER_PAIR = "undefined_transfer_pair"
MISMATCHED_CURRENCIES = "mismatched_currencies"
INSUFFICIENT_BALANCE = "insufficient_balance"
SAME_ACCOUNT = "same_account"


@dataclass(frozen=True)
class GuardViolation:
    """Tagged guard failure payload."""

    reason_code: str
    detail: str

    def to_error(self) -> GuardError:
        return guard_error_for(self.reason_code, self.detail)


GuardResult = Union["Transfer", GuardViolation]


def positive_amount(transfer: "Transfer") -> GuardResult:
    """Reject zero and negative amounts."""
    if transfer.money.is_positive():
        return transfer
    return GuardViolation(
        reason_code=POSITIVE_AMOUNT_ONLY,
        detail=f"Transfer amount must be positive, got {transfer.money.amount}.",
    )


def valid_definition(transfer: "Transfer", config: LedgerConfig) -> GuardResult:
    """Require the code and its (from, to) identifier pair to be configured."""
    pairs = config.transfer_pairs(transfer.code)
    if pairs is None:
        return GuardViolation(
            reason_code=UNDEFINED_TRANSFER_CODE,
            detail=f"Transfer code {transfer.code!r} is undefined.",
        )
    pair = (transfer.from_account.identifier, transfer.to_account.identifier)
    if pair not in pairs:
        return GuardViolation(
            reason_code=UNDEFINED_TRANSFER_PAIR,
            detail=(
                f"Transfer pair {pair[0]!r} -> {pair[1]!r} does not exist "
                f"for code {transfer.code!r}."
            ),
        )
    return transfer


def matching_currency(transfer: "Transfer") -> GuardResult:
    """Require money, source and destination to share one currency."""
    money, source, target = transfer.money, transfer.from_account, transfer.to_account
    if source.currency == money.currency and target.currency == money.currency:
        return transfer
    return GuardViolation(
        reason_code=MISMATCHED_CURRENCIES,
        detail=(
            f"Attempted to transfer {money.currency} from {source.identifier!r} in "
            f"{source.currency} to {target.identifier!r} in {target.currency}."
        ),
    )


def positive_balance_if_enforced(
    transfer: "Transfer",
    config: Optional[LedgerConfig] = None,
) -> GuardResult:
    """Keep positive-only source accounts from going below zero.

    With ``config`` the flag is resolved from configuration rather than taken
    from the account. A source without a loaded balance passes here; the
    transfer re-runs this check against the locked row.
    """
    source = transfer.from_account
    if config is not None:
        positive_only = config.positive_only(source.identifier)
    else:
        positive_only = source.positive_only
    if not positive_only or source.balance is None:
        return transfer
    balance = source.balance
    if balance < transfer.money:
        return GuardViolation(
            reason_code=INSUFFICIENT_BALANCE,
            detail=(
                f"Transfer amount: {transfer.money.amount}, "
                f"{source.identifier!r} balance amount: {balance.amount}"
            ),
        )
    return transfer


def distinct_accounts(transfer: "Transfer") -> GuardResult:
    """Reject transfers whose two sides are the same account."""
    if transfer.from_account.lock_key != transfer.to_account.lock_key:
        return transfer
    return GuardViolation(
        reason_code=SAME_ACCOUNT,
        detail=f"Cannot transfer from {transfer.from_account.identifier!r} to itself.",
    )


def guard_pipeline(config: LedgerConfig) -> tuple[Callable[["Transfer"], GuardResult], ...]:
    """Return the ordered checks bound to ``config``."""
    return (
        positive_amount,
        lambda transfer: valid_definition(transfer, config),
        matching_currency,
        lambda transfer: positive_balance_if_enforced(transfer, config),
        distinct_accounts,
    )


def validate_transfer(transfer: "Transfer", config: LedgerConfig) -> GuardResult:
    """Run every check in order and return the first violation, if any."""
    current = transfer
    for check in guard_pipeline(config):
        outcome = check(current)
        if isinstance(outcome, GuardViolation):
            return outcome
        current = outcome
    return current
