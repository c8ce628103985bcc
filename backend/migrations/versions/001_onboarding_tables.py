"""Create onboarding tables: verification_tokens, otp_credentials, pending_users.

Revision ID: 001_onboarding_tables
Revises:
Create Date: 2026-10-12

- pgcrypto provides gen_random_uuid() for UUID primary keys.
- verification_tokens: hashed single-use links keyed by (email, type).
- otp_credentials: bcrypt-hashed six-digit codes keyed by (email, purpose).
- pending_users: staged self-registrations awaiting their link.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_onboarding_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # =========================================================================
    # verification_tokens
    # =========================================================================
    op.create_table(
        "verification_tokens",
        sa.Column(
            "id",
            sa.BigInteger(),
            sa.Identity(always=False),
            primary_key=True,
        ),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("new_value", sa.String(255), nullable=True),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("group_path", sa.String(100), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("token", name="uq_verification_tokens_token"),
        sa.CheckConstraint(
            "type IN ('SELF_REG', 'INVITED', 'APP_USER')",
            name="ck_verification_tokens_type_valid",
        ),
    )
    op.create_index(
        "ix_verification_tokens_email_type",
        "verification_tokens",
        ["email", "type"],
    )
    op.create_index(
        "ix_verification_tokens_expiry_date",
        "verification_tokens",
        ["expiry_date"],
    )

    # =========================================================================
    # otp_credentials
    # =========================================================================
    op.create_table(
        "otp_credentials",
        sa.Column(
            "id",
            sa.BigInteger(),
            sa.Identity(always=False),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("code_hash", sa.String(255), nullable=False),
        sa.Column("purpose", sa.String(30), nullable=False),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "purpose IN ('FORGOT_PASSWORD')",
            name="ck_otp_credentials_purpose_valid",
        ),
    )
    op.create_index(
        "ix_otp_credentials_email_purpose",
        "otp_credentials",
        ["email", "purpose"],
    )

    # =========================================================================
    # pending_users
    # =========================================================================
    op.create_table(
        "pending_users",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("encrypted_password", sa.Text(), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("username", name="uq_pending_users_username"),
        sa.UniqueConstraint("email", name="uq_pending_users_email"),
    )


def downgrade() -> None:
    op.drop_table("pending_users")
    op.drop_index("ix_otp_credentials_email_purpose", table_name="otp_credentials")
    op.drop_table("otp_credentials")
    op.drop_index(
        "ix_verification_tokens_expiry_date", table_name="verification_tokens"
    )
    op.drop_index(
        "ix_verification_tokens_email_type", table_name="verification_tokens"
    )
    op.drop_table("verification_tokens")
    # pgcrypto is left installed; other schemas may depend on it
