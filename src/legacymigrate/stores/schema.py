"""
SQLAlchemy table definitions for the legacy and the new schema.

``legacy_metadata`` mirrors the production tables the engine reads;
``target_metadata`` is the new schema it writes. Tests create both on
SQLite; JSON columns map to JSONB/ARRAY on PostgreSQL.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects import postgresql

JSONDocument = JSON().with_variant(postgresql.JSONB(), "postgresql")
TextArray = JSON().with_variant(postgresql.ARRAY(Text()), "postgresql")

# =============================================================================
# Legacy schema (read-only)
# =============================================================================

legacy_metadata = MetaData()

legacy_user = Table(
    "User",
    legacy_metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("picture", String),
    Column("username", String, nullable=False, unique=True),
    Column("email", String, nullable=False, unique=True),
    Column("locale", String, nullable=False, default="en-US"),
    Column("emailVerified", Boolean, nullable=False, default=False),
    Column("twoFactorEnabled", Boolean, nullable=False, default=False),
    Column("createdAt", DateTime(timezone=True), nullable=False),
    Column("updatedAt", DateTime(timezone=True), nullable=False),
    Column("provider", String, nullable=False),
)

legacy_secrets = Table(
    "Secrets",
    legacy_metadata,
    Column("id", String, primary_key=True),
    Column("password", String),
    Column("lastSignedIn", DateTime(timezone=True)),
    Column("verificationToken", String),
    Column("twoFactorSecret", String),
    Column("twoFactorBackupCodes", TextArray, nullable=False, default=list),
    Column("refreshToken", String),
    Column("resetToken", String),
    Column("userId", String, ForeignKey("User.id"), nullable=False, unique=True),
)

legacy_resume = Table(
    "Resume",
    legacy_metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("slug", String, nullable=False),
    Column("data", JSONDocument, nullable=False),
    Column("visibility", String, nullable=False, default="private"),
    Column("locked", Boolean, nullable=False, default=False),
    Column("userId", String, ForeignKey("User.id"), nullable=False),
    Column("createdAt", DateTime(timezone=True), nullable=False),
    Column("updatedAt", DateTime(timezone=True), nullable=False),
)

legacy_statistics = Table(
    "Statistics",
    legacy_metadata,
    Column("id", String, primary_key=True),
    Column("views", Integer, nullable=False, default=0),
    Column("downloads", Integer, nullable=False, default=0),
    Column("resumeId", String, ForeignKey("Resume.id"), nullable=False, unique=True),
    Column("createdAt", DateTime(timezone=True), nullable=False),
    Column("updatedAt", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# Target schema
# =============================================================================

target_metadata = MetaData()

target_user = Table(
    "user",
    target_metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False, unique=True),
    Column("email_verified", Boolean, nullable=False, default=False),
    Column("image", String),
    Column("username", String, nullable=False, unique=True),
    Column("display_username", String, nullable=False, unique=True),
    Column("two_factor_enabled", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

target_account = Table(
    "account",
    target_metadata,
    Column("id", String, primary_key=True),
    Column("account_id", String, nullable=False),
    Column("provider_id", String, nullable=False),
    Column("user_id", String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("password", String),
    Column("refresh_token", String),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

target_two_factor = Table(
    "two_factor",
    target_metadata,
    Column("id", String, primary_key=True),
    Column("secret", String, nullable=False),
    Column("backup_codes", String, nullable=False),
    Column("user_id", String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

target_resume = Table(
    "resume",
    target_metadata,
    Column("id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("slug", String, nullable=False),
    Column("tags", TextArray, nullable=False, default=list),
    Column("is_public", Boolean, nullable=False, default=False),
    Column("is_locked", Boolean, nullable=False, default=False),
    Column("password", String),
    Column("data", JSONDocument, nullable=False),
    Column("user_id", String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("slug", "user_id", name="resume_slug_user_id_unique"),
)

target_resume_statistics = Table(
    "resume_statistics",
    target_metadata,
    Column("id", String, primary_key=True),
    Column("views", Integer, nullable=False, default=0),
    Column("downloads", Integer, nullable=False, default=0),
    Column("last_viewed_at", DateTime(timezone=True)),
    Column("last_downloaded_at", DateTime(timezone=True)),
    Column(
        "resume_id",
        String,
        ForeignKey("resume.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


__all__ = [
    "legacy_metadata",
    "legacy_user",
    "legacy_secrets",
    "legacy_resume",
    "legacy_statistics",
    "target_metadata",
    "target_user",
    "target_account",
    "target_two_factor",
    "target_resume",
    "target_resume_statistics",
]
