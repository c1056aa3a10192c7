"""005: create transaction_logs

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transaction_logs (
            id                      BIGSERIAL       PRIMARY KEY,
            transaction_id          VARCHAR(64)     NOT NULL,
            type                    VARCHAR(20)     NOT NULL,
            from_party              VARCHAR(64),
            to_party                VARCHAR(64),
            amount                  BIGINT          NOT NULL,
            fee                     BIGINT          NOT NULL DEFAULT 0,
            net_amount              BIGINT          NOT NULL,
            currency                CHAR(3)         NOT NULL DEFAULT 'USD',
            related_entity_id       VARCHAR(64)     NOT NULL,
            related_entity_type     VARCHAR(20)     NOT NULL,
            status                  VARCHAR(20)     NOT NULL,
            description             TEXT,
            metadata                JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_transaction_logs_txn_id   UNIQUE (transaction_id),
            CONSTRAINT ck_transaction_logs_type     CHECK (
                type IN ('PAYMENT', 'WITHDRAWAL', 'REFUND', 'FEE')
            ),
            CONSTRAINT ck_transaction_logs_status   CHECK (
                status IN ('PENDING', 'COMPLETED', 'FAILED', 'CANCELLED')
            ),
            CONSTRAINT ck_transaction_logs_entity   CHECK (
                related_entity_type IN ('CONTRACT', 'MILESTONE', 'WITHDRAWAL')
            )
        );
    """)
    op.execute("CREATE INDEX idx_transaction_logs_from ON transaction_logs (from_party, id DESC);")
    op.execute("CREATE INDEX idx_transaction_logs_to ON transaction_logs (to_party, id DESC);")
    op.execute("""
        CREATE INDEX idx_transaction_logs_entity
            ON transaction_logs (related_entity_type, related_entity_id);
    """)
    op.execute("""
        CREATE TRIGGER trg_transaction_logs_updated_at
            BEFORE UPDATE ON transaction_logs
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transaction_logs CASCADE;")
