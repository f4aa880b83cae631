"""Ledger configuration: account flags, transfer routes and runtime settings."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from double_entry.errors import UndefinedAccountError
from double_entry.money import normalize_currency


@dataclass(frozen=True)
class AccountDefinition:
    """Static per-identifier account options."""

    positive_only: bool = False


@dataclass(frozen=True)
class LedgerConfig:
    """Immutable ledger definition loaded once at process start."""

    default_currency: str
    accounts: Mapping[str, AccountDefinition] = field(default_factory=dict)
    transfers: Mapping[str, frozenset[tuple[str, str]]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_currency", normalize_currency(self.default_currency))

    def resolve_currency(self, currency: Optional[str] = None) -> str:
        """Return ``currency`` normalized, or the configured default."""
        if currency is None:
            return self.default_currency
        return normalize_currency(currency)

    def positive_only(self, identifier: str) -> bool:
        """Return the positive-only flag configured for ``identifier``."""
        definition = self.accounts.get(identifier)
        if definition is None:
            raise UndefinedAccountError(f"Account {identifier!r} is not defined in the ledger configuration.")
        return definition.positive_only

    def transfer_pairs(self, code: str) -> Optional[frozenset[tuple[str, str]]]:
        """Return the allowed (from, to) pairs for ``code`` or None if undefined."""
        return self.transfers.get(code)


@dataclass(frozen=True)
class LedgerSettings:
    """Environment-backed runtime settings for a ledger process."""

    database_url: str
    db_echo: bool
    sqlite_busy_timeout_seconds: float
    lock_retry_attempts: int
    lock_retry_backoff_seconds: float


def _read_env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None or value.strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value.strip()


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Invalid boolean value for {name}: {raw}")


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value for {name}: {raw}") from exc
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Invalid float value for {name}: {raw}") from exc
    return value


def load_ledger_settings() -> LedgerSettings:
    """Load and validate runtime settings from environment."""
    attempts = _read_int("LEDGER_LOCK_RETRY_ATTEMPTS", 3)
    if attempts < 1:
        raise RuntimeError("LEDGER_LOCK_RETRY_ATTEMPTS must be >= 1")
    backoff = _read_float("LEDGER_LOCK_RETRY_BACKOFF_SECONDS", 0.05)
    if backoff < 0:
        raise RuntimeError("LEDGER_LOCK_RETRY_BACKOFF_SECONDS must be >= 0")

    return LedgerSettings(
        database_url=_read_env("LEDGER_DATABASE_URL", "sqlite:///./ledger.db"),
        db_echo=_read_bool("LEDGER_DB_ECHO", False),
        sqlite_busy_timeout_seconds=_read_float("LEDGER_SQLITE_BUSY_TIMEOUT_SECONDS", 30.0),
        lock_retry_attempts=attempts,
        lock_retry_backoff_seconds=backoff,
    )


def _parse_accounts(raw: Any) -> dict[str, AccountDefinition]:
    if not isinstance(raw, Mapping):
        raise RuntimeError("Ledger config 'accounts' must be a mapping of identifier to options")
    accounts: dict[str, AccountDefinition] = {}
    for identifier, options in raw.items():
        if not isinstance(identifier, str) or identifier.strip() == "":
            raise RuntimeError(f"Invalid account identifier in ledger config: {identifier!r}")
        if options is None:
            options = {}
        if not isinstance(options, Mapping):
            raise RuntimeError(f"Invalid options for account {identifier!r}: {options!r}")
        positive_only = options.get("positive_only", False)
        if not isinstance(positive_only, bool):
            raise RuntimeError(f"Invalid positive_only flag for account {identifier!r}: {positive_only!r}")
        accounts[identifier] = AccountDefinition(positive_only=positive_only)
    return accounts


def _parse_pair(code: str, pair: Any) -> tuple[str, str]:
    if isinstance(pair, Mapping):
        pair = (pair.get("from"), pair.get("to"))
    if (
        not isinstance(pair, (list, tuple))
        or len(pair) != 2
        or not all(isinstance(item, str) and item.strip() != "" for item in pair)
    ):
        raise RuntimeError(f"Invalid transfer pair for code {code!r}: {pair!r}")
    return (pair[0], pair[1])


def _parse_transfers(raw: Any, accounts: Mapping[str, AccountDefinition]) -> dict[str, frozenset[tuple[str, str]]]:
    if not isinstance(raw, Mapping):
        raise RuntimeError("Ledger config 'transfers' must be a mapping of code to account pairs")
    transfers: dict[str, frozenset[tuple[str, str]]] = {}
    for code, pairs in raw.items():
        if not isinstance(code, str) or code.strip() == "":
            raise RuntimeError(f"Invalid transfer code in ledger config: {code!r}")
        if not isinstance(pairs, (list, tuple, set, frozenset)):
            raise RuntimeError(f"Transfer code {code!r} must list its account pairs")
        parsed = frozenset(_parse_pair(code, pair) for pair in pairs)
        for from_identifier, to_identifier in sorted(parsed):
            for identifier in (from_identifier, to_identifier):
                if identifier not in accounts:
                    raise RuntimeError(
                        f"Transfer code {code!r} references undefined account {identifier!r}"
                    )
        transfers[code] = parsed
    return transfers


def build_ledger_config(data: Mapping[str, Any]) -> LedgerConfig:
    """Build a validated ``LedgerConfig`` from a plain mapping."""
    raw_currency = data.get("default_currency")
    try:
        default_currency = normalize_currency(raw_currency)
    except ValueError as exc:
        raise RuntimeError(f"Invalid default_currency in ledger config: {raw_currency!r}") from exc

    accounts = _parse_accounts(data.get("accounts", {}))
    transfers = _parse_transfers(data.get("transfers", {}), accounts)
    return LedgerConfig(
        default_currency=default_currency,
        accounts=MappingProxyType(accounts),
        transfers=MappingProxyType(transfers),
    )


def load_ledger_config(path: str | Path | None = None) -> LedgerConfig:
    """Load ledger configuration from a JSON file.

    The path defaults to ``LEDGER_CONFIG_PATH``; ``LEDGER_DEFAULT_CURRENCY``
    overrides the file's default currency when set.
    """
    config_path = Path(path) if path is not None else Path(_read_env("LEDGER_CONFIG_PATH"))
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RuntimeError(f"Ledger config file not found: {config_path}") from exc
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Invalid JSON in ledger config {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"Ledger config {config_path} must contain a JSON object")

    override = os.getenv("LEDGER_DEFAULT_CURRENCY")
    if override is not None and override.strip() != "":
        data["default_currency"] = override.strip()
    return build_ledger_config(data)
