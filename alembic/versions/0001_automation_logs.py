"""automation_logs table

Revision ID: 0001_automation_logs
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_automation_logs"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS automation_logs (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            automation_id text,
            source text NOT NULL DEFAULT 'webhook',
            nhonga_transaction_id text,
            transfer_id text,
            phone_number text,
            amount numeric(14, 2),
            currency text,
            status text NOT NULL CHECK (status IN ('success', 'failed', 'skipped')),
            reason text,
            error_message text,
            payload jsonb NOT NULL DEFAULT '{}'::jsonb,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_automation_logs_created_at ON automation_logs (created_at DESC);"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_automation_logs_nhonga_tx ON automation_logs (nhonga_transaction_id);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS automation_logs;")
