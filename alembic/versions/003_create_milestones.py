"""003: create milestones

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Deferred so a reorder can swap two positions inside one transaction
    op.execute("""
        CREATE TABLE milestones (
            id                  VARCHAR(64)     PRIMARY KEY,
            contract_id         UUID            NOT NULL REFERENCES contracts (id),
            title               VARCHAR(200)    NOT NULL,
            description         TEXT            NOT NULL DEFAULT '',
            amount              BIGINT          NOT NULL,
            currency            CHAR(3)         NOT NULL DEFAULT 'USD',
            sort_order          INT             NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            deliverables        JSONB           NOT NULL DEFAULT '[]'::jsonb,
            submission_note     TEXT,
            client_feedback     TEXT,
            due_date            TIMESTAMPTZ,
            submitted_at        TIMESTAMPTZ,
            approved_at         TIMESTAMPTZ,
            rejected_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_milestones_amount     CHECK (amount > 0),
            CONSTRAINT ck_milestones_order      CHECK (sort_order >= 1),
            CONSTRAINT ck_milestones_status     CHECK (
                status IN ('PENDING', 'IN_PROGRESS', 'SUBMITTED', 'APPROVED', 'REJECTED')
            ),
            CONSTRAINT uq_milestones_contract_order UNIQUE (contract_id, sort_order)
                DEFERRABLE INITIALLY DEFERRED
        );
    """)
    op.execute("CREATE INDEX idx_milestones_contract_status ON milestones (contract_id, status);")
    op.execute("""
        CREATE TRIGGER trg_milestones_updated_at
            BEFORE UPDATE ON milestones
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS milestones CASCADE;")
