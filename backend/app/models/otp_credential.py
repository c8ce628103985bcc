"""OTP credential model - hashed one-time numeric codes.

Single-use: deleted on successful verification or when found expired.
At most one live credential per (email, purpose).
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
from app.models.enums import OtpPurpose, check_in


class OtpCredential(Base, CreatedAtMixin):
    """One-time code bound to an email and purpose.

    Attributes:
        id: Surrogate key.
        email: Email the code was issued for.
        code_hash: bcrypt hash of the 6-digit code. The raw code is never stored.
        purpose: OtpPurpose value.
        expiry_date: Moment after which the code no longer verifies.
        created_at: Issuance time (drives the reissue cooldown).
    """

    __tablename__ = "otp_credentials"
    __table_args__ = (
        CheckConstraint(
            check_in("purpose", OtpPurpose),
            name="ck_otp_credentials_purpose_valid",
        ),
        Index("ix_otp_credentials_email_purpose", "email", "purpose"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether expiry_date has passed."""
        return self.expiry_date < (now or datetime.now(UTC))
