"""Tests for the admin endpoints: user creation and the onboarding lobby."""

import uuid

import pytest

from app.core.config import settings
from app.providers.notifications.base import Workflow
from tests.conftest import TEST_ADMIN_ID

_CREATE_BODY = {
    "email": "ada@example.com",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "group": "/members/new",
}


async def _create(client, **overrides) -> dict:
    response = await client.post("/api/v1/admin/users", json={**_CREATE_BODY, **overrides})
    assert response.status_code == 201
    return response.json()["data"]


class TestCreateUser:
    """POST /api/v1/admin/users."""

    @pytest.mark.asyncio
    async def test_returns_outcome(self, client, mock_directory, mock_dispatcher):
        """201 with the temporary password and link."""
        data = await _create(client)

        assert data["username"] == "ada.lovelace"
        assert data["invitation_sent"] is True
        assert data["user_id"] in mock_directory.users
        sent = mock_dispatcher.last(Workflow.ADMIN_ONBOARDING_INVITE)
        assert sent["payload"]["temporaryPassword"] == data["temporary_password"]

    @pytest.mark.asyncio
    async def test_parent_group_rejected(self, client):
        """Parent groups fail request validation."""
        response = await client.post(
            "/api/v1/admin/users", json={**_CREATE_BODY, "group": "/members"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, client):
        """A second identity with the same email is 409."""
        await _create(client)

        response = await client.post(
            "/api/v1/admin/users", json={**_CREATE_BODY, "first_name": "Augusta"}
        )
        assert response.status_code == 409


class TestReissueInvitation:
    """POST /api/v1/admin/users/{id}/reissue-invitation."""

    @pytest.mark.asyncio
    async def test_inside_cooldown_is_429(self, client):
        """Reissuing right after creation is throttled."""
        data = await _create(client)

        response = await client.post(
            f"/api/v1/admin/users/{data['user_id']}/reissue-invitation",
            json={"email": "ada@example.com"},
        )

        assert response.status_code == 429
        assert "Retry-After" in response.headers

    @pytest.mark.asyncio
    async def test_to_new_email(self, client, mock_directory):
        """A reissue to another address moves the identity's email."""
        data = await _create(client)

        response = await client.post(
            f"/api/v1/admin/users/{data['user_id']}/reissue-invitation",
            json={"email": "ada@new.example.com", "send_invitation_email": False},
        )

        assert response.status_code == 200
        body = response.json()["data"]
        assert body["invitation_sent"] is False
        assert body["temporary_password"] != data["temporary_password"]
        assert mock_directory.users[data["user_id"]].email == "ada@new.example.com"

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, client):
        """Unknown identities are not found."""
        response = await client.post(
            f"/api/v1/admin/users/{uuid.uuid4()}/reissue-invitation",
            json={"email": "ada@example.com"},
        )
        assert response.status_code == 404


class TestSyncUser:
    """POST /api/v1/admin/users/{id}/sync."""

    @pytest.mark.asyncio
    async def test_ready_invitee_graduates(self, client, mock_directory):
        """The profile is created and the invitee leaves the lobby."""
        data = await _create(client)
        mock_directory.users[data["user_id"]].email_verified = True
        await client.patch(
            f"/api/v1/admin/invitations/{data['user_id']}/stage",
            json={"stage": "AWAITING_PROFILE_COMPLETION"},
        )

        response = await client.post(f"/api/v1/admin/users/{data['user_id']}/sync")
        listing = await client.get("/api/v1/admin/invitations")

        assert response.status_code == 200
        assert response.json()["data"]["keycloak_id"] == data["user_id"]
        assert response.json()["data"]["groups"] == ["/members/new"]
        assert listing.json()["meta"]["total"] == 0

    @pytest.mark.asyncio
    async def test_unverified_invitee_is_422(self, client):
        """A fresh invitee cannot have a profile yet."""
        data = await _create(client)

        response = await client.post(f"/api/v1/admin/users/{data['user_id']}/sync")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "ONBOARDING_INCOMPLETE"

    @pytest.mark.asyncio
    async def test_unknown_user_is_404(self, client):
        """No identity, nothing to sync."""
        response = await client.post(f"/api/v1/admin/users/{uuid.uuid4()}/sync")
        assert response.status_code == 404


class TestListInvitations:
    """GET /api/v1/admin/invitations."""

    @pytest.mark.asyncio
    async def test_lists_rows_with_meta(self, client):
        """Rows carry the inviter; meta carries the totals."""
        data = await _create(client)
        await _create(
            client, email="grace@example.com", first_name="Grace", last_name="Hopper"
        )

        response = await client.get(
            "/api/v1/admin/invitations",
            params={"size": 1, "sort_by": "email", "sort_direction": "asc"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == 2
        assert body["meta"]["total_pages"] == 2
        row = body["data"][0]
        assert row["keycloak_id"] == data["user_id"]
        assert row["current_stage"] == "AWAITING_VERIFICATION"
        assert row["invited_by"]["id"] == str(TEST_ADMIN_ID)

    @pytest.mark.asyncio
    async def test_filters_by_group(self, client):
        """Repeated groups params match any of them."""
        await _create(client)
        await _create(
            client,
            email="grace@example.com",
            first_name="Grace",
            last_name="Hopper",
            group="/moderators/peer",
        )

        response = await client.get(
            "/api/v1/admin/invitations",
            params=[("groups", "/moderators/peer"), ("groups", "/members/active")],
        )

        emails = [row["email"] for row in response.json()["data"]]
        assert emails == ["grace@example.com"]

    @pytest.mark.asyncio
    async def test_bad_sort_column(self, client):
        """Unknown sort columns are 400."""
        response = await client.get(
            "/api/v1/admin/invitations", params={"sort_by": "password"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SORT_FIELD"

    @pytest.mark.asyncio
    async def test_oversized_page(self, client):
        """size above 100 fails validation."""
        response = await client.get("/api/v1/admin/invitations", params={"size": 101})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_negative_page(self, client):
        """Negative pages are INVALID_PAGINATION."""
        response = await client.get("/api/v1/admin/invitations", params={"page": -1})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAGINATION"


class TestStageOverride:
    """PATCH /api/v1/admin/invitations/{id}/stage."""

    @pytest.mark.asyncio
    async def test_sets_stage(self, client):
        """The override is visible in the listing."""
        data = await _create(client)

        response = await client.patch(
            f"/api/v1/admin/invitations/{data['user_id']}/stage",
            json={"stage": "AWAITING_PROFILE_COMPLETION"},
        )
        listing = await client.get(
            "/api/v1/admin/invitations",
            params={"stage": "AWAITING_PROFILE_COMPLETION"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["current_stage"] == "AWAITING_PROFILE_COMPLETION"
        assert listing.json()["meta"]["total"] == 1

    @pytest.mark.asyncio
    async def test_unknown_row_is_404(self, client):
        """No lobby row, nothing to override."""
        response = await client.patch(
            f"/api/v1/admin/invitations/{uuid.uuid4()}/stage",
            json={"stage": "AWAITING_PASSWORD_RESET"},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_stage_rejected(self, client):
        """Only lobby stages are accepted."""
        data = await _create(client)

        response = await client.patch(
            f"/api/v1/admin/invitations/{data['user_id']}/stage",
            json={"stage": "COMPLETED"},
        )
        assert response.status_code == 400


class TestRevokeInvitation:
    """DELETE /api/v1/admin/invitations/{id}."""

    @pytest.mark.asyncio
    async def test_revoke_returns_204(self, client, mock_directory):
        """The identity and its lobby row are removed."""
        data = await _create(client)

        response = await client.delete(f"/api/v1/admin/invitations/{data['user_id']}")
        listing = await client.get("/api/v1/admin/invitations")

        assert response.status_code == 204
        assert data["user_id"] not in mock_directory.users
        assert listing.json()["meta"]["total"] == 0

    @pytest.mark.asyncio
    async def test_verified_invitation_cannot_be_revoked(self, client, mock_directory):
        """Accepted invitations are 422 INVITATION_ALREADY_VERIFIED."""
        data = await _create(client)
        mock_directory.users[data["user_id"]].email_verified = True

        response = await client.delete(f"/api/v1/admin/invitations/{data['user_id']}")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVITATION_ALREADY_VERIFIED"


class TestAdminAuthLocalMode:
    """Local mode without DEFAULT_ADMIN_ID."""

    @pytest.mark.asyncio
    async def test_missing_default_admin_is_401(self, client, monkeypatch):
        """No acting admin configured means no admin access."""
        monkeypatch.setattr(settings, "default_admin_id", None)

        response = await client.get("/api/v1/admin/invitations")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
