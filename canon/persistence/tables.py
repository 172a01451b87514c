"""SQLAlchemy table definitions for the identity store.

These describe the columns this service knows about. The live ``users``
table is shared and may be wider or narrower; reads and writes are
narrowed to the live column set by SchemaGuard.
"""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# USERS TABLE (canonical accounts)
# ============================================================================
users_table = Table(
    "users",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("full_name", Text, nullable=False),
    Column("email", String(255), nullable=True),  # Secondary key, not unique
    Column("phone", String(32), nullable=True),  # Messaging-channel number
    Column("avatar_url", Text, nullable=True),
    Column("rank", Text, nullable=True),
    Column("city", Text, nullable=True),
    Column("country", Text, nullable=True),
    Column("is_admin", Boolean, nullable=False, server_default="false"),
    Column("is_premium", Boolean, nullable=False, server_default="false"),
    Column("primary_auth_provider", String(50), nullable=True),
    Column("auth_providers", JSONB, nullable=False, server_default="[]"),
    Column("login_count", Integer, nullable=False, server_default="0"),
    Column("last_login", TIMESTAMP(timezone=True), nullable=True),
    Column(
        "created_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column(
        "updated_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
)

Index("idx_users_email", users_table.c.email)
Index("idx_users_phone", users_table.c.phone)

# ============================================================================
# USER IDENTITIES TABLE (one row per provider credential)
# ============================================================================
user_identities_table = Table(
    "user_identities",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("user_id", UUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("provider", String(50), nullable=False),  # 'google', 'whatsapp', ...
    Column("provider_id", String(255), nullable=False),  # Opaque provider id
    Column("is_primary", Boolean, nullable=False, server_default="false"),
    Column("is_verified", Boolean, nullable=False, server_default="false"),
    Column("metadata", JSONB, nullable=False, server_default="{}"),
    Column(
        "created_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    Column(
        "updated_at", TIMESTAMP(timezone=True), nullable=False, server_default="NOW()"
    ),
    # Authoritative tie-breaker for racing first logins
    UniqueConstraint("provider", "provider_id", name="uq_provider_identity"),
)

Index("idx_user_identities_user_id", user_identities_table.c.user_id)
Index("idx_user_identities_provider_id", user_identities_table.c.provider_id)

KNOWN_TABLES: dict[str, Table] = {
    users_table.name: users_table,
    user_identities_table.name: user_identities_table,
}
