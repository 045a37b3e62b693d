"""
Tests for request-scoped actor context resolution.

Covers:
- Unauthenticated and plain sessions
- Honoured and rejected impersonation pairs
- Starting and stopping impersonation
"""

from unittest.mock import AsyncMock

import pytest

from app.services.actor_context import (
    SESSION_IMPERSONATED_USER_ID,
    SESSION_REAL_ADMIN_ID,
    SESSION_USER_ID,
    ActorContext,
    resolve_actor_context,
    start_impersonation,
    stop_impersonation,
)


@pytest.fixture
def users(make_user):
    """Admin, partner and another admin keyed by ID."""
    return {
        "admin": make_user("admin", is_admin=True),
        "partner": make_user("partner"),
        "other": make_user("other", is_admin=True),
    }


@pytest.fixture
def user_repo(users):
    """UserRepository mock backed by the users fixture."""
    repo = AsyncMock()
    repo.get_by_id = AsyncMock(side_effect=lambda user_id: users.get(user_id))
    return repo


class TestResolveActorContext:
    """resolve_actor_context rules."""

    @pytest.mark.asyncio
    async def test_no_user_is_unauthenticated(self, user_repo):
        resolution = await resolve_actor_context(user_repo, {})

        assert resolution.context is None
        assert resolution.clear_impersonation is False

    @pytest.mark.asyncio
    async def test_unknown_user_is_unauthenticated(self, user_repo):
        resolution = await resolve_actor_context(
            user_repo, {SESSION_USER_ID: "ghost"}
        )

        assert resolution.context is None

    @pytest.mark.asyncio
    async def test_plain_session(self, user_repo, users):
        resolution = await resolve_actor_context(
            user_repo, {SESSION_USER_ID: "partner"}
        )

        context = resolution.context
        assert context.effective_user is users["partner"]
        assert context.acting_admin is None
        assert context.is_impersonating is False
        assert context.is_admin is False

    @pytest.mark.asyncio
    async def test_valid_impersonation(self, user_repo, users):
        resolution = await resolve_actor_context(
            user_repo,
            {
                SESSION_USER_ID: "admin",
                SESSION_IMPERSONATED_USER_ID: "partner",
                SESSION_REAL_ADMIN_ID: "admin",
            },
        )

        context = resolution.context
        assert context.effective_user is users["partner"]
        assert context.acting_admin is users["admin"]
        assert context.is_impersonating is True
        assert context.real_user is users["admin"]
        # Rights come from the real admin, not the impersonated partner
        assert context.is_admin is True
        assert resolution.clear_impersonation is False

    @pytest.mark.asyncio
    async def test_non_admin_pair_is_cleared(self, user_repo, users):
        resolution = await resolve_actor_context(
            user_repo,
            {
                SESSION_USER_ID: "partner",
                SESSION_IMPERSONATED_USER_ID: "admin",
                SESSION_REAL_ADMIN_ID: "partner",
            },
        )

        assert resolution.clear_impersonation is True
        assert resolution.context.effective_user is users["partner"]
        assert resolution.context.is_impersonating is False

    @pytest.mark.asyncio
    async def test_missing_impersonated_user_is_cleared(self, user_repo, users):
        resolution = await resolve_actor_context(
            user_repo,
            {
                SESSION_USER_ID: "admin",
                SESSION_IMPERSONATED_USER_ID: "ghost",
                SESSION_REAL_ADMIN_ID: "admin",
            },
        )

        assert resolution.clear_impersonation is True
        assert resolution.context.effective_user is users["admin"]

    @pytest.mark.asyncio
    async def test_missing_admin_is_cleared(self, user_repo):
        resolution = await resolve_actor_context(
            user_repo,
            {
                SESSION_IMPERSONATED_USER_ID: "partner",
                SESSION_REAL_ADMIN_ID: "ghost",
            },
        )

        assert resolution.clear_impersonation is True
        assert resolution.context is None


class TestImpersonationSwitch:
    """start_impersonation / stop_impersonation."""

    def test_admin_can_start(self, users):
        context = ActorContext(effective_user=users["admin"])

        keys = start_impersonation(context, users["partner"])

        assert keys == {
            SESSION_IMPERSONATED_USER_ID: "partner",
            SESSION_REAL_ADMIN_ID: "admin",
        }

    def test_switching_target_keeps_real_admin(self, users):
        context = ActorContext(
            effective_user=users["partner"],
            acting_admin=users["admin"],
            is_impersonating=True,
        )

        keys = start_impersonation(context, users["other"])

        assert keys[SESSION_REAL_ADMIN_ID] == "admin"
        assert keys[SESSION_IMPERSONATED_USER_ID] == "other"

    def test_non_admin_cannot_start(self, users):
        context = ActorContext(effective_user=users["partner"])

        with pytest.raises(PermissionError):
            start_impersonation(context, users["admin"])

    def test_stop_removes_only_impersonation_keys(self):
        session_data = {
            SESSION_USER_ID: "admin",
            SESSION_IMPERSONATED_USER_ID: "partner",
            SESSION_REAL_ADMIN_ID: "admin",
            "other_key": 1,
        }

        cleaned = stop_impersonation(session_data)

        assert cleaned == {SESSION_USER_ID: "admin", "other_key": 1}
        # Input is left untouched
        assert SESSION_REAL_ADMIN_ID in session_data
