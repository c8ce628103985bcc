"""Pending user model - self-registrations awaiting email verification.

A row lives between the registration request and either promotion to a
directory identity (row deleted) or the orphan sweep (no token left).
"""

import uuid

from sqlalchemy import String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, CreatedAtMixin


class PendingUser(Base, CreatedAtMixin):
    """Staged self-registration.

    Attributes:
        id: UUID primary key.
        username: Requested directory username.
        email: Normalized email; unique while staged.
        encrypted_password: Fernet ciphertext of the chosen password. Not a
            hash: the raw password is replayed into the directory at promotion.
        first_name: Given name.
        last_name: Family name.
        created_at: Submission time.
    """

    __tablename__ = "pending_users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    encrypted_password: Mapped[str] = mapped_column(
        Text(),
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
