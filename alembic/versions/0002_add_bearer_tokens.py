"""Add bearer_tokens table for REST API authentication.

The expires_at index backs both the lookup-time expiry filter and the
periodic sweep that deletes expired rows.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bearer_tokens",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_bearer_tokens_user_id", "bearer_tokens", ["user_id"])
    op.create_index("ix_bearer_tokens_expires_at", "bearer_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_bearer_tokens_expires_at", table_name="bearer_tokens")
    op.drop_index("ix_bearer_tokens_user_id", table_name="bearer_tokens")
    op.drop_table("bearer_tokens")
