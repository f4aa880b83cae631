"""Atomic double-entry transfers between two accounts."""

from __future__ import annotations

from dataclasses import dataclass, replace
import enum
import logging
from typing import Any, Mapping, Optional, Union

from sqlalchemy.orm import Session

from double_entry.account import Account, from_row
from double_entry.balance_store import BalanceStore
from double_entry.config import LedgerConfig
from double_entry.errors import AccountNotFoundError, LedgerError
from double_entry.guard import GuardViolation, positive_balance_if_enforced, validate_transfer
from double_entry.ledger_line import insert_line, link_partner
from double_entry.money import Money

logger = logging.getLogger(__name__)


class TransferState(str, enum.Enum):
    """Lifecycle of one transfer execution."""

    PROPOSED = "PROPOSED"
    VALIDATED = "VALIDATED"
    ACCOUNTS_RESOLVED = "ACCOUNTS_RESOLVED"
    LOCKED = "LOCKED"
    LINES_RECORDED = "LINES_RECORDED"
    BALANCES_UPDATED = "BALANCES_UPDATED"
    COMMITTED = "COMMITTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Transfer:
    """A proposed movement of ``money`` from one account to another."""

    money: Money
    from_account: Account
    to_account: Account
    code: str
    metadata: Optional[Mapping[str, Any]] = None

    @classmethod
    def coerce(cls, value: Union["Transfer", Mapping[str, Any]]) -> "Transfer":
        """Normalize a ``Transfer`` or an attribute mapping into a ``Transfer``.

        Mappings may name the accounts ``from``/``to`` or
        ``from_account``/``to_account``; each account may itself be an
        ``Account`` or a mapping of account attributes.
        """
        if isinstance(value, Transfer):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"Cannot build a Transfer from {type(value).__name__}")
        attrs = dict(value)
        source = attrs.pop("from", None) if "from" in attrs else attrs.pop("from_account", None)
        target = attrs.pop("to", None) if "to" in attrs else attrs.pop("to_account", None)
        if source is None or target is None:
            raise ValueError("Transfer requires both a source and a destination account")
        money = attrs.pop("money", None)
        if not isinstance(money, Money):
            raise TypeError(f"Transfer money must be Money, got {money!r}")
        code = attrs.pop("code", None)
        if not isinstance(code, str) or code.strip() == "":
            raise ValueError(f"Invalid transfer code: {code!r}")
        metadata = attrs.pop("metadata", None)
        if attrs:
            raise TypeError(f"Unexpected transfer attributes: {sorted(attrs)}")
        return cls(
            money=money,
            from_account=Account.coerce(source),
            to_account=Account.coerce(target),
            code=code,
            metadata=metadata,
        )


@dataclass(frozen=True)
class TransferResult:
    """Tagged outcome of a transfer attempt.

    ``failed_state`` is the last state the transfer reached before failing.
    ``transfer`` is None only when the input could not be normalized.
    """

    transfer: Optional[Transfer]
    state: TransferState
    error: Optional[LedgerError] = None
    failed_state: Optional[TransferState] = None
    debit_line_id: Optional[int] = None
    credit_line_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.state is TransferState.COMMITTED

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None

    def unwrap(self) -> "TransferResult":
        """Return self when committed, otherwise raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self


class _Progress:
    def __init__(self, transfer: Transfer) -> None:
        self.transfer = transfer
        self.state = TransferState.PROPOSED

    def advance(self, state: TransferState) -> None:
        logger.debug(
            "Transfer %s %s -> %s: %s => %s",
            self.transfer.code,
            self.transfer.from_account.identifier,
            self.transfer.to_account.identifier,
            self.state.value,
            state.value,
        )
        self.state = state


def _record(
    session: Session,
    transfer: Transfer,
    *,
    store: BalanceStore,
    config: LedgerConfig,
    progress: _Progress,
) -> tuple[int, int]:
    money = transfer.money
    source_row = store.find(session, transfer.from_account)
    target_row = store.find(session, transfer.to_account)
    if source_row is None or target_row is None:
        raise AccountNotFoundError()
    source = from_row(source_row, config)
    target = from_row(target_row, config)

    # Balances passed in by the caller may be stale; only the locked rows count.
    locked = replace(transfer, from_account=source, to_account=target)
    outcome = positive_balance_if_enforced(locked, config)
    if isinstance(outcome, GuardViolation):
        raise outcome.to_error()

    debit = insert_line(
        session,
        -money,
        account=source,
        partner=target,
        code=transfer.code,
        metadata=transfer.metadata,
    )
    credit = insert_line(
        session,
        money,
        account=target,
        partner=source,
        code=transfer.code,
        metadata=transfer.metadata,
    )
    link_partner(session, debit, credit.id)
    link_partner(session, credit, debit.id)
    progress.advance(TransferState.LINES_RECORDED)

    store.update_balance(session, source, (source.balance_or_zero() - money).amount)
    store.update_balance(session, target, (target.balance_or_zero() + money).amount)
    progress.advance(TransferState.BALANCES_UPDATED)
    return debit.id, credit.id


def execute_transfer(
    value: Union[Transfer, Mapping[str, Any]],
    *,
    store: BalanceStore,
    config: LedgerConfig,
    ensure_accounts: bool = True,
) -> TransferResult:
    """Validate and execute a transfer, returning a tagged result.

    Guard failures are reported before anything is read or written. With
    ``ensure_accounts`` missing balance rows are created inside the transfer's
    transaction; without it both accounts must already exist. Ledger errors
    raised after locking roll the transaction back and are reported in the
    result; other exceptions propagate.
    """
    try:
        transfer = Transfer.coerce(value)
    except LedgerError as exc:
        logger.warning("Transfer rejected before validation (%s): %s", exc.code, exc)
        return TransferResult(
            transfer=None,
            state=TransferState.FAILED,
            error=exc,
            failed_state=TransferState.PROPOSED,
        )
    progress = _Progress(transfer)

    outcome = validate_transfer(transfer, config)
    if isinstance(outcome, GuardViolation):
        logger.warning("Transfer rejected (%s): %s", outcome.reason_code, outcome.detail)
        return TransferResult(
            transfer=transfer,
            state=TransferState.FAILED,
            error=outcome.to_error(),
            failed_state=progress.state,
        )
    transfer = outcome
    progress.advance(TransferState.VALIDATED)

    try:
        debit_id, credit_id = store.lock_multi(
            [transfer.from_account, transfer.to_account],
            lambda session: _record(session, transfer, store=store, config=config, progress=progress),
            ensure_accounts=ensure_accounts,
            on_resolved=lambda: progress.advance(TransferState.ACCOUNTS_RESOLVED),
            on_locked=lambda: progress.advance(TransferState.LOCKED),
        )
    except LedgerError as exc:
        logger.warning(
            "Transfer %s failed in state %s (%s): %s",
            transfer.code,
            progress.state.value,
            exc.code,
            exc,
        )
        return TransferResult(
            transfer=transfer,
            state=TransferState.FAILED,
            error=exc,
            failed_state=progress.state,
        )

    progress.advance(TransferState.COMMITTED)
    logger.info(
        "Committed transfer %s of %s from %s to %s (lines %s/%s)",
        transfer.code,
        transfer.money,
        transfer.from_account.lock_key,
        transfer.to_account.lock_key,
        debit_id,
        credit_id,
    )
    return TransferResult(
        transfer=transfer,
        state=TransferState.COMMITTED,
        debit_line_id=debit_id,
        credit_line_id=credit_id,
    )


def perform_transfer(
    value: Union[Transfer, Mapping[str, Any]],
    *,
    store: BalanceStore,
    config: LedgerConfig,
    ensure_accounts: bool = True,
) -> TransferResult:
    """Execute a transfer, raising its ``LedgerError`` on failure."""
    return execute_transfer(value, store=store, config=config, ensure_accounts=ensure_accounts).unwrap()
