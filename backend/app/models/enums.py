"""Discriminators stored in the onboarding tables.

Values are persisted as plain strings; each table guards its column with a
CheckConstraint listing the members below.
"""

from enum import Enum


class VerificationType(str, Enum):
    """Which finalize path a verification token drives."""

    SELF_REG = "SELF_REG"
    INVITED = "INVITED"
    APP_USER = "APP_USER"


class OtpPurpose(str, Enum):
    """Which flow a one-time code authorizes."""

    FORGOT_PASSWORD = "FORGOT_PASSWORD"


class OnboardingStage(str, Enum):
    """Admin-invitation lobby stages, in order.

    Completion is not a stage: the lobby row is deleted.
    """

    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    AWAITING_PASSWORD_RESET = "AWAITING_PASSWORD_RESET"
    AWAITING_PROFILE_COMPLETION = "AWAITING_PROFILE_COMPLETION"


def check_in(column: str, enum_cls: type[Enum]) -> str:
    """Render ``column IN ('A', 'B')`` for a CheckConstraint."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
