"""Pytest fixtures shared across unit and integration tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from sqlalchemy import Engine

from double_entry.account import Account
from double_entry.balance_store import BalanceStore
from double_entry.config import LedgerConfig, build_ledger_config
from double_entry.ledger import Ledger
from ledger_backend.db import Base, create_ledger_engine


LEDGER_CONFIG_DATA: dict[str, Any] = {
    "default_currency": "USD",
    "accounts": {
        "checking": {"positive_only": True},
        "savings": {},
        "cash": {},
        "wallet": {"positive_only": True},
    },
    "transfers": {
        "deposit": [["checking", "savings"], ["cash", "checking"], ["cash", "savings"]],
        "withdraw": [["savings", "checking"], ["savings", "cash"]],
        "send": [["wallet", "wallet"], ["cash", "wallet"]],
    },
}


@pytest.fixture
def ledger_config() -> LedgerConfig:
    return build_ledger_config(LEDGER_CONFIG_DATA)


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed SQLite engine with the ledger schema created."""
    engine = create_ledger_engine(f"sqlite:///{tmp_path / 'ledger.db'}", sqlite_busy_timeout=10.0)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def store(engine: Engine) -> BalanceStore:
    return BalanceStore(engine)


@pytest.fixture
def ledger(store: BalanceStore, ledger_config: LedgerConfig) -> Ledger:
    return Ledger(store, ledger_config)


@pytest.fixture
def set_balance(store: BalanceStore) -> Callable[[Account, int], None]:
    """Write a starting balance directly to an account's row, creating it if needed."""

    def _set(account: Account, amount: int) -> None:
        with store.transaction() as session:
            row = store.get_or_create(session, account)
            row.balance_amount = amount

    return _set


@pytest.fixture(scope="session")
def pg_url() -> str:
    """SQLAlchemy URL for the PostgreSQL integration database."""
    host = os.getenv("TEST_DB_HOST")
    port = os.getenv("TEST_DB_PORT")
    dbname = os.getenv("TEST_DB_NAME")
    user = os.getenv("TEST_DB_USER")
    password = os.getenv("TEST_DB_PASSWORD")

    if not all([host, port, dbname, user, password]):
        pytest.skip("Integration DB env vars are missing; set TEST_DB_HOST/PORT/NAME/USER/PASSWORD")

    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{dbname}"


@pytest.fixture
def pg_engine(pg_url: str) -> Iterator[Engine]:
    """PostgreSQL engine with a freshly created ledger schema."""
    engine = create_ledger_engine(pg_url)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()
