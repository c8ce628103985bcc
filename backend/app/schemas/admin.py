"""Admin API request/response schemas.

Pydantic models for admin-created identities and the onboarding lobby.
All schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.core.groups import GroupPath
from app.models.enums import OnboardingStage

_VALID_GROUPS = frozenset(g.value for g in GroupPath.assignable())


def _validate_group(value: str) -> str:
    """Validate the group is an assignable group path."""
    if value not in _VALID_GROUPS:
        msg = f"group must be one of: {', '.join(sorted(_VALID_GROUPS))}"
        raise ValueError(msg)
    return value


# =============================================================================
# Admin-created users
# =============================================================================


class AdminUserCreate(BaseModel):
    """Request body for POST /admin/users.

    Attributes:
        email: Invitee email.
        first_name: Given name.
        last_name: Family name.
        group: Assignable onboarding group path.
        username: Optional explicit username (generated when omitted).
        send_invitation_email: Trigger the invitation notification.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    group: str = Field(default=GroupPath.MEMBERS_NEW.value, max_length=100)
    username: str | None = Field(
        default=None, min_length=3, max_length=30, pattern=r"^[A-Za-z0-9._]+$"
    )
    send_invitation_email: bool = True

    @field_validator("group")
    @classmethod
    def check_group(cls, v: str) -> str:
        """Validate group."""
        return _validate_group(v)


class ReissueInvitationRequest(BaseModel):
    """Request body for POST /admin/users/{id}/reissue-invitation."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    group: str | None = Field(default=None, max_length=100)
    send_invitation_email: bool = True

    @field_validator("group")
    @classmethod
    def check_group(cls, v: str | None) -> str | None:
        """Validate group when provided."""
        if v is None:
            return v
        return _validate_group(v)


class InvitationOutcomeResponse(BaseModel):
    """Result of creating or reissuing an invitation."""

    model_config = ConfigDict(extra="forbid")

    user_id: str
    username: str
    temporary_password: str
    invitation_link: str
    invitation_sent: bool


# =============================================================================
# Lobby
# =============================================================================


class InviterResponse(BaseModel):
    """Inviting admin, resolved from local profiles."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str | None


class PendingInviteResponse(BaseModel):
    """One lobby row."""

    model_config = ConfigDict(extra="forbid")

    id: str
    keycloak_id: str
    email: str
    username: str
    first_name: str
    last_name: str
    groups: list[str]
    is_enabled: bool
    is_email_verified: bool
    current_stage: str
    is_initial_login: bool
    date_created: datetime
    updated_at: datetime
    invited_by: InviterResponse


class StageUpdateRequest(BaseModel):
    """Request body for PATCH /admin/invitations/{id}/stage."""

    model_config = ConfigDict(extra="forbid")

    stage: OnboardingStage


class StageResponse(BaseModel):
    """Lobby row after a stage override."""

    id: str
    current_stage: OnboardingStage


class AppUserResponse(BaseModel):
    """Local profile after a directory sync."""

    id: str
    keycloak_id: str
    email: str
    username: str
    first_name: str | None
    last_name: str | None
    groups: list[str]
    is_enabled: bool
    last_synced_at: datetime | None
