"""001: create users with freelancer balances

Revision ID: 001
Revises: 
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE users (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            email               VARCHAR(255)    NOT NULL,
            role                VARCHAR(16)     NOT NULL,
            is_active           BOOLEAN         NOT NULL DEFAULT TRUE,
            pending_balance     BIGINT          NOT NULL DEFAULT 0,
            available_balance   BIGINT          NOT NULL DEFAULT 0,
            balance_version     BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_email               UNIQUE (email),
            CONSTRAINT ck_users_role                CHECK (role IN ('client', 'freelancer', 'admin')),
            CONSTRAINT ck_users_pending_balance     CHECK (pending_balance >= 0),
            CONSTRAINT ck_users_available_balance   CHECK (available_balance >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON COLUMN users.pending_balance IS "
        "'cents released from escrow, not yet withdrawable';"
    )
    op.execute("COMMENT ON COLUMN users.available_balance IS 'cents the freelancer may withdraw';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
