"""Initial schema for the double-entry ledger."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

logger = logging.getLogger(__name__)

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
METADATA_TYPE = sa.JSON().with_variant(JSONB(), "postgresql")

INDEXES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "idx_ledger_line_code_account_currency_inserted_at",
        ("code", "account_identifier", "currency", "inserted_at"),
    ),
    (
        "idx_ledger_line_scope_account_currency_inserted_at",
        ("account_scope", "account_identifier", "currency", "inserted_at"),
    ),
)

APPEND_ONLY_DDL: tuple[str, ...] = (
    """
    CREATE OR REPLACE FUNCTION fn_ledger_line_append_only()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $$
    BEGIN
        IF TG_OP = 'DELETE' THEN
            RAISE EXCEPTION 'append-only violation on table %, operation % is not allowed', TG_TABLE_NAME, TG_OP;
        END IF;
        IF OLD.partner_line_id IS NOT NULL
           OR (to_jsonb(NEW) - 'partner_line_id' - 'updated_at')
              IS DISTINCT FROM (to_jsonb(OLD) - 'partner_line_id' - 'updated_at') THEN
            RAISE EXCEPTION 'append-only violation on table %, only a one-time partner_line_id back-fill is allowed', TG_TABLE_NAME;
        END IF;
        RETURN NEW;
    END;
    $$;
    """,
    """
    CREATE TRIGGER trg_ledger_line_append_only
    BEFORE UPDATE OR DELETE ON ledger_line
    FOR EACH ROW EXECUTE FUNCTION fn_ledger_line_append_only();
    """,
)

DROP_APPEND_ONLY_DDL: tuple[str, ...] = (
    "DROP TRIGGER IF EXISTS trg_ledger_line_append_only ON ledger_line;",
    "DROP FUNCTION IF EXISTS fn_ledger_line_append_only();",
)


def _execute_all(statements: Sequence[str]) -> None:
    """Execute an ordered sequence of SQL statements."""

    for statement in statements:
        try:
            op.execute(statement)
        except Exception:
            logger.exception("Migration statement failed.")
            raise


def _is_postgresql() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def _timestamps() -> tuple[sa.Column, sa.Column]:
    return (
        sa.Column("inserted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def _create_tables() -> None:
    op.create_table(
        "account_balance",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("identifier", sa.Text(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("scope", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("balance_amount", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_account_balance"),
        sa.UniqueConstraint(
            "scope",
            "currency",
            "identifier",
            name="uq_account_balance_scope_currency_identifier",
        ),
    )
    op.create_table(
        "ledger_line",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("account_identifier", sa.Text(), nullable=False),
        sa.Column("account_scope", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("balance_amount", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("partner_identifier", sa.Text(), nullable=False),
        sa.Column("partner_scope", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("metadata", METADATA_TYPE, nullable=True),
        sa.Column("partner_line_id", ID_TYPE, nullable=True),
        sa.Column("account_balance_id", ID_TYPE, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_ledger_line"),
        sa.ForeignKeyConstraint(
            ["partner_line_id"],
            ["ledger_line.id"],
            name="fk_ledger_line_partner_line",
        ),
        sa.ForeignKeyConstraint(
            ["account_balance_id"],
            ["account_balance.id"],
            name="fk_ledger_line_account_balance",
        ),
    )
    for name, columns in INDEXES:
        op.create_index(name, "ledger_line", list(columns))


def upgrade() -> None:
    """Apply the initial ledger schema migration."""

    logger.info("Starting initial ledger schema migration upgrade.")
    _create_tables()
    if _is_postgresql():
        _execute_all(APPEND_ONLY_DDL)
    logger.info("Completed initial ledger schema migration upgrade.")


def downgrade() -> None:
    """Revert the initial ledger schema migration."""

    logger.info("Starting initial ledger schema migration downgrade.")
    if _is_postgresql():
        _execute_all(DROP_APPEND_ONLY_DDL)
    for name, _ in reversed(INDEXES):
        op.drop_index(name, table_name="ledger_line")
    op.drop_table("ledger_line")
    op.drop_table("account_balance")
    logger.info("Completed initial ledger schema migration downgrade.")
