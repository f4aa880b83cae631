"""Reads, creation, locking and updates of persisted account balance rows."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import sqlite3
from typing import Callable, Iterator, Optional, Sequence, TypeVar

from psycopg import errors as pg_errors
from sqlalchemy import Engine, Select, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from double_entry.account import Account, storage_scope
from double_entry.errors import AccountNotFoundError, DuplicateAccountError, LockContentionError
from ledger_backend.db.engine import supports_row_locking as engine_supports_row_locking
from ledger_backend.db.models import AccountBalance

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_lock_contention(exc: OperationalError) -> bool:
    """Return True when a driver error means a lock could not be acquired."""
    orig = exc.orig
    if isinstance(orig, pg_errors.LockNotAvailable):
        return True
    if isinstance(orig, sqlite3.OperationalError):
        message = str(orig).lower()
        return "database is locked" in message or "database table is locked" in message
    return False


def sort_for_locking(accounts: Sequence[Account]) -> list[Account]:
    """De-duplicate accounts by identity and order them by their lock key."""
    unique: dict[tuple[str, str, str], Account] = {}
    for account in accounts:
        unique.setdefault(account.lock_key, account)
    return [unique[key] for key in sorted(unique)]


class BalanceStore:
    """Balance row operations over a SQLAlchemy engine.

    Row operations take the caller's ``Session`` so that locks, line inserts
    and balance updates share one transaction. When the backend has no
    row-level locks (SQLite) every transaction is single-writer instead, and
    ``lock`` degrades to a plain read.
    """

    def __init__(self, engine: Engine, *, supports_row_locking: Optional[bool] = None) -> None:
        self.engine = engine
        if supports_row_locking is None:
            supports_row_locking = engine_supports_row_locking(engine)
        self.supports_row_locking = supports_row_locking
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session inside one transaction, committed on success."""
        try:
            with self._session_factory.begin() as session:
                yield session
        except OperationalError as exc:
            if is_lock_contention(exc):
                logger.warning("Lock contention while running ledger transaction: %s", exc.orig)
                raise LockContentionError(f"Could not acquire account lock: {exc.orig}") from exc
            raise

    def _select(self, account: Account, *, lock: bool) -> Select[tuple[AccountBalance]]:
        stmt = select(AccountBalance).where(
            AccountBalance.identifier == account.identifier,
            AccountBalance.currency == account.currency,
            AccountBalance.scope == storage_scope(account.scope),
        )
        if lock:
            stmt = stmt.execution_options(populate_existing=True)
            if self.supports_row_locking:
                stmt = stmt.with_for_update(nowait=True)
        return stmt

    def find(self, session: Session, account: Account) -> Optional[AccountBalance]:
        """Read the balance row for ``account`` without locking."""
        return session.execute(self._select(account, lock=False)).scalar_one_or_none()

    def create(self, session: Session, account: Account) -> AccountBalance:
        """Insert a zero-balance row for ``account``."""
        row = AccountBalance(
            identifier=account.identifier,
            currency=account.currency,
            scope=storage_scope(account.scope),
            balance_amount=0,
        )
        try:
            with session.begin_nested():
                session.add(row)
        except IntegrityError as exc:
            raise DuplicateAccountError(
                f"Account {account.identifier!r} already exists for currency "
                f"{account.currency} and scope {account.scope!r}."
            ) from exc
        return row

    def get_or_create(self, session: Session, account: Account, *, lock: bool = False) -> AccountBalance:
        """Return the balance row for ``account``, creating it when absent."""
        row = self.lock(session, account) if lock else self.find(session, account)
        if row is not None:
            return row
        try:
            row = self.create(session, account)
        except DuplicateAccountError:
            # Lost a concurrent create; the winner's row is committed now.
            logger.debug("Concurrent create for %s, re-reading", account.lock_key)
            row = self.lock(session, account) if lock else self.find(session, account)
            if row is None:
                raise
            return row
        if lock:
            return self.lock(session, account) or row
        return row

    def lock(self, session: Session, account: Account) -> Optional[AccountBalance]:
        """Read the row for ``account`` holding an exclusive, non-blocking lock."""
        return session.execute(self._select(account, lock=True)).scalar_one_or_none()

    def lock_multi(
        self,
        accounts: Sequence[Account],
        fn: Callable[[Session], T],
        *,
        ensure_accounts: bool = False,
        on_resolved: Optional[Callable[[], None]] = None,
        on_locked: Optional[Callable[[], None]] = None,
    ) -> T:
        """Lock ``accounts`` in global order and run ``fn`` in the same transaction.

        Accounts are sorted by ``(scope, currency, identifier)`` and first
        resolved, then locked, in that order, so two transfers over the same
        accounts always contend on the same first row. With ``ensure_accounts``
        missing rows are created inside the transaction; otherwise a missing
        row raises ``AccountNotFoundError``. ``on_resolved`` and ``on_locked``
        are called after each pass completes. Any exception rolls back the
        whole scope.
        """
        ordered = sort_for_locking(accounts)
        with self.transaction() as session:
            for account in ordered:
                if ensure_accounts:
                    row = self.get_or_create(session, account)
                else:
                    row = self.find(session, account)
                if row is None:
                    raise AccountNotFoundError(
                        f"Account {account.identifier!r} ({account.currency}, scope {account.scope!r}) not found."
                    )
            if on_resolved is not None:
                on_resolved()

            for account in ordered:
                if self.lock(session, account) is None:
                    raise AccountNotFoundError(f"Account {account.identifier!r} not found.")
            logger.debug("Locked accounts %s", [account.lock_key for account in ordered])
            if on_locked is not None:
                on_locked()
            return fn(session)

    def update_balance(self, session: Session, account: Account, balance_amount: int) -> AccountBalance:
        """Write ``balance_amount`` to the locked row of ``account``."""
        row = self.lock(session, account)
        if row is None:
            raise AccountNotFoundError(f"Account {account.identifier!r} not found.")
        row.balance_amount = balance_amount
        session.flush()
        return row
