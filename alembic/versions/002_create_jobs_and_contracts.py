"""002: create jobs and contracts

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE jobs (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            client_id       UUID            NOT NULL REFERENCES users (id),
            title           VARCHAR(200)    NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'OPEN',
            completed_at    TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_jobs_status CHECK (
                status IN ('OPEN', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')
            )
        );
    """)
    op.execute("""
        CREATE TABLE contracts (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            job_id                  UUID            REFERENCES jobs (id),
            client_id               UUID            NOT NULL REFERENCES users (id),
            freelancer_id           UUID            NOT NULL REFERENCES users (id),
            status                  VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            currency                CHAR(3)         NOT NULL DEFAULT 'USD',
            total_amount            BIGINT          NOT NULL,
            total_paid              BIGINT          NOT NULL DEFAULT 0,
            released_amount         BIGINT          NOT NULL DEFAULT 0,
            milestone_count         INT             NOT NULL DEFAULT 0,
            completed_milestones    INT             NOT NULL DEFAULT 0,
            completed_at            TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_contracts_status CHECK (
                status IN ('PENDING', 'PENDING_PAYMENT', 'ACTIVE', 'COMPLETED',
                           'CANCELLED', 'DISPUTED')
            ),
            CONSTRAINT ck_contracts_amounts_non_negative CHECK (
                total_amount >= 0 AND total_paid >= 0 AND released_amount >= 0
            ),
            CONSTRAINT ck_contracts_released_le_total CHECK (released_amount <= total_amount),
            CONSTRAINT ck_contracts_milestone_counts CHECK (
                completed_milestones >= 0 AND completed_milestones <= milestone_count
            )
        );
    """)
    op.execute("CREATE INDEX idx_contracts_client ON contracts (client_id);")
    op.execute("CREATE INDEX idx_contracts_freelancer ON contracts (freelancer_id);")
    for table in ("jobs", "contracts"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS contracts CASCADE;")
    op.execute("DROP TABLE IF EXISTS jobs CASCADE;")
