"""Verification token model - link tokens driving onboarding transitions.

Single-use, time-limited proofs bound to an email and a purpose. At most one
live token per (email, type) is kept by delete-before-insert at issuance;
expired rows may linger until the cleanup sweep.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Identity,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, CreatedAtMixin
from app.models.enums import VerificationType, check_in


class VerificationToken(Base, CreatedAtMixin):
    """Verification link token.

    Attributes:
        id: Surrogate key.
        token: SHA-256 hash of the plain token (the plain value only
            travels inside the link).
        email: Current/anchor email of the identity.
        new_value: Proposed replacement value (e.g. new email), if any.
        expiry_date: Moment after which the token no longer validates.
        type: VerificationType value.
        group_path: Onboarding group target, if any.
        created_at: Server-assigned issuance time (drives the cooldown).
    """

    __tablename__ = "verification_tokens"
    __table_args__ = (
        CheckConstraint(
            check_in("type", VerificationType),
            name="ck_verification_tokens_type_valid",
        ),
        Index("ix_verification_tokens_email_type", "email", "type"),
        Index("ix_verification_tokens_expiry_date", "expiry_date"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )
    token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    new_value: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    group_path: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    @property
    def verification_type(self) -> VerificationType:
        """Typed view of the ``type`` column."""
        return VerificationType(self.type)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether expiry_date has passed. No grace period.

        Args:
            now: Reference time; defaults to the current UTC time.
        """
        return self.expiry_date < (now or datetime.now(UTC))
