"""Create admin_invitations lobby and app_users profiles.

Revision ID: 002_lobby_and_profiles
Revises: 001_onboarding_tables
Create Date: 2026-10-12

- admin_invitations: one row per admin-created identity still onboarding.
  groups is a text[] with a GIN index for any-overlap filtering.
- app_users: local mirror of fully onboarded directory identities.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ARRAY, UUID

revision: str = "002_lobby_and_profiles"
down_revision: str | None = "001_onboarding_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_STAGES = (
    "'AWAITING_VERIFICATION', 'AWAITING_PASSWORD_RESET', "
    "'AWAITING_PROFILE_COMPLETION'"
)


def upgrade() -> None:
    # =========================================================================
    # admin_invitations
    # =========================================================================
    op.create_table(
        "admin_invitations",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("keycloak_id", UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column(
            "groups",
            ARRAY(sa.String(100)),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        sa.Column(
            "is_enabled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "is_email_verified",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "date_created",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("invited_by", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "current_stage",
            sa.String(40),
            nullable=False,
            server_default="AWAITING_VERIFICATION",
        ),
        sa.Column(
            "is_initial_login",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.UniqueConstraint("keycloak_id", name="uq_admin_invitations_keycloak_id"),
        sa.CheckConstraint(
            f"current_stage IN ({_STAGES})",
            name="ck_admin_invitations_stage_valid",
        ),
    )
    op.create_index(
        "ix_admin_invitations_email", "admin_invitations", ["email"]
    )
    op.create_index(
        "ix_admin_invitations_groups",
        "admin_invitations",
        ["groups"],
        postgresql_using="gin",
    )

    # =========================================================================
    # app_users
    # =========================================================================
    op.create_table(
        "app_users",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("keycloak_id", UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column(
            "groups",
            ARRAY(sa.String(100)),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
        ),
        sa.Column(
            "is_enabled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "date_joined",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("keycloak_id", name="uq_app_users_keycloak_id"),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"])


def downgrade() -> None:
    op.drop_index("ix_app_users_email", table_name="app_users")
    op.drop_table("app_users")
    op.drop_index("ix_admin_invitations_groups", table_name="admin_invitations")
    op.drop_index("ix_admin_invitations_email", table_name="admin_invitations")
    op.drop_table("admin_invitations")
