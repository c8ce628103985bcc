"""Admin API router.

Endpoints for admin-created identities and the onboarding lobby.

All endpoints require the CurrentAdminId dependency.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from app.api.deps import CurrentAdminId, DbSession, Directory, Dispatcher
from app.core.errors import NotFoundError
from app.core.responses import DataResponse, ListResponse, PaginationMeta
from app.models.enums import OnboardingStage
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
from app.services.admin_invitation_service import AdminInvitationService, PendingInvite
from app.services.admin_user_service import AdminUserService, InvitationOutcome
from app.services.app_user_service import AppUserService

router = APIRouter()

# =============================================================================
# Shared types and helpers
# =============================================================================

PageParam = Annotated[int, Query(description="Page number (0-based)")]
SizeParam = Annotated[int, Query(le=100, description="Items per page (max 100)")]
GroupsFilter = Annotated[
    list[str] | None,
    Query(description="Match rows sharing any of these group paths"),
]
InvitedByFilter = Annotated[
    uuid.UUID | None,
    Query(description="Filter by inviting admin"),
]
SortByParam = Annotated[str, Query(max_length=40, description="Sort column")]
SortDirectionParam = Annotated[str, Query(max_length=4, description="asc or desc")]
SearchParam = Annotated[
    str | None,
    Query(max_length=100, description="Substring over email, username and names"),
]
StageFilter = Annotated[
    OnboardingStage | None,
    Query(description="Filter by onboarding stage"),
]


def _outcome_response(outcome: InvitationOutcome) -> InvitationOutcomeResponse:
    """Build InvitationOutcomeResponse from a service result."""
    return InvitationOutcomeResponse(
        user_id=outcome.user_id,
        username=outcome.username,
        temporary_password=outcome.temporary_password,
        invitation_link=outcome.invitation_link,
        invitation_sent=outcome.invitation_sent,
    )


def _invite_response(invite: PendingInvite) -> PendingInviteResponse:
    """Build PendingInviteResponse from a lobby row and its inviter."""
    row = invite.invitation
    return PendingInviteResponse(
        id=str(row.id),
        keycloak_id=str(row.keycloak_id),
        email=row.email,
        username=row.username,
        first_name=row.first_name,
        last_name=row.last_name,
        groups=list(row.groups),
        is_enabled=row.is_enabled,
        is_email_verified=row.is_email_verified,
        current_stage=row.current_stage,
        is_initial_login=row.is_initial_login,
        date_created=row.date_created,
        updated_at=row.updated_at,
        invited_by=InviterResponse(
            id=str(invite.inviter_id), name=invite.inviter_name
        ),
    )


# =============================================================================
# Admin-created users
# =============================================================================


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    admin_id: CurrentAdminId,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
    body: AdminUserCreate,
) -> DataResponse[InvitationOutcomeResponse]:
    """Create a directory identity and invite it into onboarding."""
    svc = AdminUserService(db, directory, dispatcher)
    outcome = await svc.create_user_as_admin(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        group_path=body.group,
        invited_by=admin_id,
        username=body.username,
        send_invitation_email=body.send_invitation_email,
    )
    await svc.commit_created(outcome.user_id)
    return DataResponse(data=_outcome_response(outcome))


@router.post("/users/{user_id}/reissue-invitation")
async def reissue_invitation(
    _admin: CurrentAdminId,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
    user_id: uuid.UUID,
    body: ReissueInvitationRequest,
) -> DataResponse[InvitationOutcomeResponse]:
    """Reset the temporary password and send a fresh invitation link."""
    svc = AdminUserService(db, directory, dispatcher)
    outcome = await svc.reissue_invitation(
        user_id=user_id,
        email=body.email,
        group_path=body.group,
        send_invitation_email=body.send_invitation_email,
    )
    await db.commit()
    return DataResponse(data=_outcome_response(outcome))


@router.post("/users/{user_id}/sync")
async def sync_user(
    _admin: CurrentAdminId,
    db: DbSession,
    directory: Directory,
    user_id: uuid.UUID,
) -> DataResponse[AppUserResponse]:
    """Refresh the local profile; an invitee ready for it leaves the lobby."""
    user = await AppUserService(db, directory).sync_user(user_id)
    await db.commit()
    return DataResponse(
        data=AppUserResponse(
            id=str(user.id),
            keycloak_id=str(user.keycloak_id),
            email=user.email,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            groups=list(user.groups),
            is_enabled=user.is_enabled,
            last_synced_at=user.last_synced_at,
        )
    )


# =============================================================================
# Lobby
# =============================================================================


@router.get("/invitations")
async def list_invitations(
    _admin: CurrentAdminId,
    db: DbSession,
    directory: Directory,
    page: PageParam = 0,
    size: SizeParam = 20,
    groups: GroupsFilter = None,
    invited_by: InvitedByFilter = None,
    sort_by: SortByParam = "date_created",
    sort_direction: SortDirectionParam = "desc",
    search: SearchParam = None,
    stage: StageFilter = None,
) -> ListResponse[PendingInviteResponse]:
    """List identities still in onboarding."""
    svc = AdminInvitationService(db, directory)
    invites, total = await svc.get_pending_invites(
        page=page,
        size=size,
        groups=groups,
        invited_by=invited_by,
        sort_by=sort_by,
        sort_direction=sort_direction,
        search=search,
        stage=stage,
    )
    return ListResponse(
        data=[_invite_response(invite) for invite in invites],
        meta=PaginationMeta(total=total, page=page, size=size),
    )


@router.patch("/invitations/{user_id}/stage")
async def update_invitation_stage(
    _admin: CurrentAdminId,
    db: DbSession,
    directory: Directory,
    user_id: uuid.UUID,
    body: StageUpdateRequest,
) -> DataResponse[StageResponse]:
    """Override the onboarding stage of a lobby row."""
    svc = AdminInvitationService(db, directory)
    if not await svc.update_onboarding_stage(user_id, body.stage):
        raise NotFoundError("Invitation", str(user_id))
    await db.commit()
    return DataResponse(
        data=StageResponse(id=str(user_id), current_stage=body.stage)
    )


@router.delete("/invitations/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_invitation(
    _admin: CurrentAdminId,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
    user_id: uuid.UUID,
) -> Response:
    """Delete a not-yet-onboarded identity and its lobby row."""
    svc = AdminUserService(db, directory, dispatcher)
    await svc.revoke_invitation(user_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
