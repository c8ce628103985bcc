"""Pydantic request/response schemas for API endpoints."""

from app.schemas.admin import (
    AdminUserCreate,
    AppUserResponse,
    InvitationOutcomeResponse,
    InviterResponse,
    PendingInviteResponse,
    ReissueInvitationRequest,
    StageResponse,
    StageUpdateRequest,
)

__all__ = [
    # Admin-created users
    "AdminUserCreate",
    "AppUserResponse",
    "InvitationOutcomeResponse",
    "ReissueInvitationRequest",
    # Lobby
    "InviterResponse",
    "PendingInviteResponse",
    "StageResponse",
    "StageUpdateRequest",
]
