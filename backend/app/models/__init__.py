"""SQLAlchemy ORM models for the onboarding engine.

All models are exported from this module for convenient imports:
    from app.models import VerificationToken, AdminInvitation, ...

Models are organized by table:
- verification_token.py: VerificationToken (link tokens)
- otp_credential.py: OtpCredential (hashed one-time codes)
- pending_user.py: PendingUser (self-registration staging)
- admin_invitation.py: AdminInvitation (onboarding lobby)
- app_user.py: AppUser (local profile mirror)
"""

from app.models.admin_invitation import AdminInvitation
from app.models.app_user import AppUser
from app.models.base import Base, CreatedAtMixin, TimestampMixin
from app.models.enums import OnboardingStage, OtpPurpose, VerificationType
from app.models.otp_credential import OtpCredential
from app.models.pending_user import PendingUser
from app.models.verification_token import VerificationToken

__all__ = [
    # Base classes
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    # Enums
    "OnboardingStage",
    "OtpPurpose",
    "VerificationType",
    # Verification artifacts
    "VerificationToken",
    "OtpCredential",
    # Staging
    "PendingUser",
    "AdminInvitation",
    # Profiles
    "AppUser",
]
