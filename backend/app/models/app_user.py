"""App user model - local mirror of directory identities.

Directory-owned fields (email, username, names, groups, enabled) are copied
in by the profile sync; the directory remains authoritative for them.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class AppUser(Base, TimestampMixin):
    """Local profile for a fully onboarded identity.

    Attributes:
        id: UUID primary key.
        keycloak_id: Directory identity id; unique.
        email: Synced email.
        username: Synced username.
        first_name: Synced given name.
        last_name: Synced family name.
        display_name: Optional public alias, owned locally.
        groups: Cached group paths (display only).
        is_enabled: Synced enabled flag.
        date_joined: When the local profile was first created.
        last_synced_at: Last time directory fields were copied in.
    """

    __tablename__ = "app_users"

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
    first_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    last_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    display_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
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
    date_joined: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def name(self) -> str:
        """Display name, falling back to full name then username."""
        if self.display_name:
            return self.display_name
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.username
