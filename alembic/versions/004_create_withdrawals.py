"""004: create withdrawals

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE withdrawals (
            id                      VARCHAR(64)     PRIMARY KEY,
            freelancer_id           UUID            NOT NULL REFERENCES users (id),
            amount                  BIGINT          NOT NULL,
            processing_fee          BIGINT          NOT NULL DEFAULT 0,
            final_amount            BIGINT          NOT NULL,
            currency                CHAR(3)         NOT NULL DEFAULT 'USD',
            method                  VARCHAR(20)     NOT NULL,
            destination             VARCHAR(255)    NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            idempotency_key         VARCHAR(128),
            description             VARCHAR(500),
            external_transfer_id    VARCHAR(255),
            error_message           TEXT,
            requested_at            TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            processed_at            TIMESTAMPTZ,
            completed_at            TIMESTAMPTZ,
            failed_at               TIMESTAMPTZ,
            cancelled_at            TIMESTAMPTZ,
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_withdrawals_amount        CHECK (amount > 0),
            CONSTRAINT ck_withdrawals_fee           CHECK (processing_fee >= 0),
            CONSTRAINT ck_withdrawals_final_amount  CHECK (final_amount = amount - processing_fee),
            CONSTRAINT ck_withdrawals_method        CHECK (
                method IN ('BANK_TRANSFER', 'PAYPAL', 'STRIPE')
            ),
            CONSTRAINT ck_withdrawals_status        CHECK (
                status IN ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')
            )
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_withdrawals_idempotency
            ON withdrawals (freelancer_id, idempotency_key)
            WHERE idempotency_key IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_withdrawals_freelancer_status ON withdrawals (freelancer_id, status);")
    op.execute("""
        CREATE INDEX idx_withdrawals_pending ON withdrawals (requested_at)
            WHERE status = 'PENDING';
    """)
    op.execute("""
        CREATE TRIGGER trg_withdrawals_updated_at
            BEFORE UPDATE ON withdrawals
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS withdrawals CASCADE;")
