"""006: create notification_outbox

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE notification_outbox (
            id                  BIGSERIAL       PRIMARY KEY,
            event_type          VARCHAR(40)     NOT NULL,
            entity_id           VARCHAR(64)     NOT NULL,
            recipient_id        VARCHAR(64)     NOT NULL,
            payload             JSONB           NOT NULL DEFAULT '{}'::jsonb,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            attempts            INT             NOT NULL DEFAULT 0,
            last_error          TEXT,
            next_attempt_at     TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            delivered_at        TIMESTAMPTZ,
            CONSTRAINT ck_notification_outbox_status CHECK (
                status IN ('PENDING', 'DELIVERED', 'DEAD')
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_notification_outbox_due
            ON notification_outbox (next_attempt_at)
            WHERE status = 'PENDING';
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notification_outbox CASCADE;")
