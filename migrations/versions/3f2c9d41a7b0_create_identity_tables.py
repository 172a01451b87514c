"""create_identity_tables

Create the canonical identity store:
- Users (canonical accounts, one per person)
- User Identities (one row per provider credential)

The users table is shared with other services and may already exist,
possibly narrower than the one described here. It is only created when
absent; the identity service adapts to whatever columns are live.

Revision ID: 3f2c9d41a7b0
Revises:
Create Date: 2026-10-19 10:12:44.518302

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3f2c9d41a7b0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    existing = set(sa.inspect(op.get_bind()).get_table_names())

    # ========================================================================
    # USERS table (created only on a fresh database)
    # ========================================================================
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column(
                "id",
                sa.UUID(),
                server_default=sa.text("gen_random_uuid()"),
                nullable=False,
            ),
            sa.Column("full_name", sa.Text(), nullable=False),
            sa.Column("email", sa.String(255), nullable=True),
            sa.Column("phone", sa.String(32), nullable=True),
            sa.Column("avatar_url", sa.Text(), nullable=True),
            sa.Column("rank", sa.Text(), nullable=True),
            sa.Column("city", sa.Text(), nullable=True),
            sa.Column("country", sa.Text(), nullable=True),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default="false"),
            sa.Column(
                "is_premium", sa.Boolean(), nullable=False, server_default="false"
            ),
            sa.Column("primary_auth_provider", sa.String(50), nullable=True),
            sa.Column(
                "auth_providers",
                postgresql.JSONB(),
                nullable=False,
                server_default=sa.text("'[]'::jsonb"),
            ),
            sa.Column("login_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_login", sa.TIMESTAMP(timezone=True), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_users_email", "users", ["email"])
        op.create_index("idx_users_phone", "users", ["phone"])

    # ========================================================================
    # USER_IDENTITIES table (multi-provider authentication)
    # ========================================================================
    op.create_table(
        "user_identities",
        sa.Column(
            "id",
            sa.UUID(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_id", sa.String(255), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_id", name="uq_provider_identity"),
    )
    op.create_index("idx_user_identities_user_id", "user_identities", ["user_id"])
    op.create_index(
        "idx_user_identities_provider_id", "user_identities", ["provider_id"]
    )


def downgrade() -> None:
    """Downgrade schema.

    Only the identity table is dropped; the shared users table is left alone.
    """
    op.drop_index("idx_user_identities_provider_id", table_name="user_identities")
    op.drop_index("idx_user_identities_user_id", table_name="user_identities")
    op.drop_table("user_identities")
