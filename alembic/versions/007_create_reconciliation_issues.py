"""007: create reconciliation_issues

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE reconciliation_issues (
            id              BIGSERIAL       PRIMARY KEY,
            kind            VARCHAR(40)     NOT NULL,
            entity_type     VARCHAR(20)     NOT NULL,
            entity_id       VARCHAR(64)     NOT NULL,
            user_id         VARCHAR(64),
            amount          BIGINT          NOT NULL,
            detail          TEXT            NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'OPEN',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            resolved_at     TIMESTAMPTZ,
            CONSTRAINT ck_reconciliation_issues_kind CHECK (
                kind IN ('PENDING_BALANCE_DRIFT', 'REFUND_FAILED', 'ORPHANED_TRANSFER')
            ),
            CONSTRAINT ck_reconciliation_issues_status CHECK (status IN ('OPEN', 'RESOLVED'))
        );
    """)
    op.execute("""
        CREATE INDEX idx_reconciliation_issues_open
            ON reconciliation_issues (id DESC)
            WHERE status = 'OPEN';
    """)
    op.execute("COMMENT ON TABLE reconciliation_issues IS 'ledger states that need manual reconciliation';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS reconciliation_issues CASCADE;")
