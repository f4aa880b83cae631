"""Tests for the initial Alembic migration, run through real Alembic operations on SQLite."""

from __future__ import annotations

from contextlib import contextmanager
import importlib.util
from pathlib import Path
import sys
from typing import Any, Iterator

from alembic.migration import MigrationContext
from alembic.operations import Operations
import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError

from ledger_backend.db import Base


MIGRATION_PATH = (
    Path(__file__).resolve().parents[1]
    / "ledger_backend"
    / "db"
    / "migrations"
    / "versions"
    / "0001_initial_schema.py"
)


def _load_migration_module(module_name: str) -> Any:
    spec = importlib.util.spec_from_file_location(module_name, MIGRATION_PATH)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[sa.Engine]:
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'migration.db'}")
    try:
        yield engine
    finally:
        engine.dispose()


@contextmanager
def _migration_ops(engine: sa.Engine) -> Iterator[None]:
    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            yield


def test_revision_metadata_constants() -> None:
    module = _load_migration_module("migration_0001_meta")
    assert module.revision == "0001_initial_schema"
    assert module.down_revision is None
    assert module.branch_labels is None
    assert module.depends_on is None


def test_upgrade_creates_tables_indexes_and_constraints(sqlite_engine: sa.Engine) -> None:
    module = _load_migration_module("migration_0001_upgrade")
    with _migration_ops(sqlite_engine):
        module.upgrade()

    inspector = sa.inspect(sqlite_engine)
    assert set(inspector.get_table_names()) == {"account_balance", "ledger_line"}

    unique = inspector.get_unique_constraints("account_balance")
    assert [(item["name"], item["column_names"]) for item in unique] == [
        ("uq_account_balance_scope_currency_identifier", ["scope", "currency", "identifier"]),
    ]

    indexes = {item["name"]: item["column_names"] for item in inspector.get_indexes("ledger_line")}
    assert indexes == {name: list(columns) for name, columns in module.INDEXES}

    foreign_keys = {item["name"]: item["referred_table"] for item in inspector.get_foreign_keys("ledger_line")}
    assert foreign_keys == {
        "fk_ledger_line_partner_line": "ledger_line",
        "fk_ledger_line_account_balance": "account_balance",
    }


def test_migrated_columns_match_orm_models(sqlite_engine: sa.Engine) -> None:
    module = _load_migration_module("migration_0001_columns")
    with _migration_ops(sqlite_engine):
        module.upgrade()

    inspector = sa.inspect(sqlite_engine)
    for table_name in ("account_balance", "ledger_line"):
        migrated = {column["name"] for column in inspector.get_columns(table_name)}
        declared = {column.name for column in Base.metadata.tables[table_name].columns}
        assert migrated == declared, table_name


def test_downgrade_drops_everything(sqlite_engine: sa.Engine) -> None:
    module = _load_migration_module("migration_0001_downgrade")
    with _migration_ops(sqlite_engine):
        module.upgrade()
    with _migration_ops(sqlite_engine):
        module.downgrade()

    assert sa.inspect(sqlite_engine).get_table_names() == []


def test_append_only_trigger_is_postgresql_only(sqlite_engine: sa.Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    module = _load_migration_module("migration_0001_trigger")
    groups: list[tuple[str, ...]] = []
    monkeypatch.setattr(module, "_execute_all", lambda statements: groups.append(tuple(statements)))

    with _migration_ops(sqlite_engine):
        module.upgrade()
    assert groups == []

    monkeypatch.setattr(module, "_is_postgresql", lambda: True)
    with _migration_ops(sqlite_engine):
        module.downgrade()
    assert groups == [module.DROP_APPEND_ONLY_DDL]

    groups.clear()
    with _migration_ops(sqlite_engine):
        module.upgrade()
    assert groups == [module.APPEND_ONLY_DDL]
    assert "trg_ledger_line_append_only" in module.APPEND_ONLY_DDL[1]


def test_execute_all_logs_and_reraises(sqlite_engine: sa.Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    module = _load_migration_module("migration_0001_execute_error")
    seen: list[str] = []
    monkeypatch.setattr(module.logger, "exception", lambda message: seen.append(message))

    with pytest.raises(OperationalError):
        with _migration_ops(sqlite_engine):
            module._execute_all(("SELECT 1", "SELECT * FROM missing_table"))

    assert seen == ["Migration statement failed."]
