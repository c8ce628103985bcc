"""Admin invitation model - the onboarding lobby.

One row per admin-created directory identity that has not finished
onboarding. The stage only moves forward; completion deletes the row.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, func, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import OnboardingStage, check_in


class AdminInvitation(Base):
    """Lobby row for an admin-invited identity.

    Attributes:
        id: UUID primary key.
        keycloak_id: Directory identity id (not a local foreign key).
        email: Cached directory email.
        username: Cached directory username.
        first_name: Cached given name.
        last_name: Cached family name.
        groups: Cached group paths (display only, not authoritative).
        is_enabled: Cached directory enabled flag.
        is_email_verified: Set once the invitation link is verified.
        date_created: When the admin created the identity.
        invited_by: Directory id of the inviting admin.
        updated_at: Last lobby mutation.
        current_stage: OnboardingStage value.
        is_initial_login: True until the one-time password is replaced.
    """

    __tablename__ = "admin_invitations"
    __table_args__ = (
        CheckConstraint(
            check_in("current_stage", OnboardingStage),
            name="ck_admin_invitations_stage_valid",
        ),
        Index(
            "ix_admin_invitations_groups",
            "groups",
            postgresql_using="gin",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    keycloak_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        unique=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    groups: Mapped[list[str]] = mapped_column(
        ARRAY(String(100)),
        nullable=False,
        server_default=text("'{}'::text[]"),
        default=list,
    )
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("true"),
        default=True,
    )
    is_email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    invited_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    current_stage: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        server_default=OnboardingStage.AWAITING_VERIFICATION.value,
        default=OnboardingStage.AWAITING_VERIFICATION.value,
    )
    is_initial_login: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("true"),
        default=True,
    )
