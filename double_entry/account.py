"""Account value objects and their lookup/creation against the balance store."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from double_entry.config import LedgerConfig
from double_entry.errors import InvalidScopeError
from double_entry.money import Money, normalize_currency
from ledger_backend.db.models import AccountBalance

if TYPE_CHECKING:
    from double_entry.balance_store import BalanceStore

logger = logging.getLogger(__name__)


def storage_scope(scope: Optional[str]) -> str:
    """Map a logical scope to its stored form; no scope is stored as ``""``."""
    if scope is None:
        return ""
    if not isinstance(scope, str) or scope == "":
        raise InvalidScopeError()
    return scope


@dataclass(frozen=True)
class Account:
    """Identity and balance snapshot of one ledger account.

    ``scope`` distinguishes otherwise identical identifiers (for example one
    wallet per user). ``None`` is the unscoped account; an explicit empty
    string is rejected.
    """

    identifier: str
    currency: str
    scope: Optional[str] = None
    id: Optional[int] = None
    balance: Optional[Money] = None
    positive_only: Optional[bool] = None

    def __post_init__(self) -> None:
        if not isinstance(self.identifier, str) or self.identifier.strip() == "":
            raise ValueError(f"Invalid account identifier: {self.identifier!r}")
        storage_scope(self.scope)
        object.__setattr__(self, "currency", normalize_currency(self.currency))

    @property
    def lock_key(self) -> tuple[str, str, str]:
        """Global ordering key used for lock acquisition."""
        return (storage_scope(self.scope), self.currency, self.identifier)

    def balance_or_zero(self) -> Money:
        if self.balance is None:
            return Money.zero(self.currency)
        return self.balance

    @classmethod
    def coerce(cls, value: "Account | Mapping[str, Any]") -> "Account":
        """Accept an ``Account`` or a mapping of its attributes."""
        if isinstance(value, Account):
            return value
        if isinstance(value, Mapping):
            attrs = dict(value)
            balance = attrs.get("balance")
            if isinstance(balance, int) and not isinstance(balance, bool):
                attrs["balance"] = Money(balance, attrs.get("currency", ""))
            return cls(**attrs)
        raise TypeError(f"Cannot build an Account from {type(value).__name__}")


def present(row: Optional[AccountBalance], config: LedgerConfig) -> Optional[Account]:
    """Build an ``Account`` from a persisted balance row."""
    if row is None:
        return None
    return from_row(row, config)


def from_row(row: AccountBalance, config: LedgerConfig) -> Account:
    return Account(
        id=row.id,
        identifier=row.identifier,
        currency=row.currency,
        scope=row.scope or None,
        positive_only=config.positive_only(row.identifier),
        balance=Money(row.balance_amount, row.currency),
    )


def lookup(
    store: "BalanceStore",
    config: LedgerConfig,
    identifier: str,
    *,
    currency: Optional[str] = None,
    scope: Optional[str] = None,
) -> Optional[Account]:
    """Return the existing account or None; never creates a row."""
    probe = Account(identifier=identifier, currency=config.resolve_currency(currency), scope=scope)
    with store.transaction() as session:
        return present(store.find(session, probe), config)


def make(
    store: "BalanceStore",
    config: LedgerConfig,
    identifier: str,
    *,
    currency: Optional[str] = None,
    scope: Optional[str] = None,
) -> Account:
    """Create a zero-balance account row and return its ``Account``."""
    resolved_currency = config.resolve_currency(currency)
    account = Account(
        identifier=identifier,
        currency=resolved_currency,
        scope=scope,
        balance=Money.zero(resolved_currency),
        positive_only=config.positive_only(identifier),
    )
    with store.transaction() as session:
        row = store.create(session, account)
    logger.info("Created ledger account %s", account.lock_key)
    return from_row(row, config)
