"""Engine construction with backend-specific transaction discipline."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, create_engine, event

logger = logging.getLogger(__name__)

ROW_LOCKING_DIALECTS: frozenset[str] = frozenset({"postgresql"})


def supports_row_locking(engine: Engine) -> bool:
    """Return True when the backend offers non-blocking row-level locks."""
    return engine.dialect.name in ROW_LOCKING_DIALECTS


def _install_sqlite_single_writer(engine: Engine, *, in_memory: bool) -> None:
    """Serialize every SQLite transaction behind ``BEGIN IMMEDIATE``.

    The pysqlite driver starts transactions lazily and only takes the write
    lock on the first write. Emitting our own BEGIN takes the reserved lock up
    front, so at most one transaction is open against the file at a time.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection: Any) -> None:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def create_ledger_engine(
    url: str,
    *,
    echo: bool = False,
    sqlite_busy_timeout: float = 30.0,
    **engine_kwargs: Any,
) -> Engine:
    """Create an engine suitable for concurrent ledger transfers."""
    if url.startswith("sqlite"):
        connect_args = dict(engine_kwargs.pop("connect_args", {}))
        connect_args.setdefault("timeout", sqlite_busy_timeout)
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, echo=echo, connect_args=connect_args, **engine_kwargs)
        in_memory = engine.url.database in (None, "", ":memory:")
        _install_sqlite_single_writer(engine, in_memory=in_memory)
        logger.debug("Created SQLite ledger engine with single-writer transactions: %s", engine.url)
        return engine

    engine = create_engine(url, echo=echo, **engine_kwargs)
    logger.debug(
        "Created ledger engine for dialect %s (row locking=%s)",
        engine.dialect.name,
        supports_row_locking(engine),
    )
    return engine
