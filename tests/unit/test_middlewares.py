"""
Tests for bot middlewares.

Covers:
- Per-update session commit / rollback
- Admin gate on the actor context and the Telegram allow-list
- Actor context resolution from FSM data
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services.actor_context import (
    SESSION_IMPERSONATED_USER_ID,
    SESSION_REAL_ADMIN_ID,
    SESSION_USER_ID,
    ActorContext,
    ContextResolution,
)
from bot.middlewares.actor_context import ActorContextMiddleware
from bot.middlewares.admin_auth_middleware import AdminAuthMiddleware
from bot.middlewares.database import DatabaseMiddleware


def session_pool_for(session):
    """async_sessionmaker stand-in yielding the given session."""
    pool = MagicMock()
    pool.return_value.__aenter__ = AsyncMock(return_value=session)
    pool.return_value.__aexit__ = AsyncMock(return_value=False)
    return pool


class TestDatabaseMiddleware:
    """Session per update."""

    @pytest.mark.asyncio
    async def test_commits_after_handler(self, mock_session):
        middleware = DatabaseMiddleware(session_pool_for(mock_session))
        handler = AsyncMock(return_value="done")
        data = {}

        result = await middleware(handler, MagicMock(), data)

        assert result == "done"
        assert data["session"] is mock_session
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, mock_session):
        middleware = DatabaseMiddleware(session_pool_for(mock_session))
        handler = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await middleware(handler, MagicMock(), {})

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()


class TestAdminAuthMiddleware:
    """Admin gate."""

    @pytest.mark.asyncio
    async def test_admin_passes(self, make_user):
        middleware = AdminAuthMiddleware(allowed_telegram_ids=[])
        handler = AsyncMock(return_value="ok")
        data = {"actor": ActorContext(effective_user=make_user("a", is_admin=True))}

        assert await middleware(handler, MagicMock(), data) == "ok"
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_admin_is_refused(self, make_user):
        middleware = AdminAuthMiddleware(allowed_telegram_ids=[])
        handler = AsyncMock()
        data = {"actor": ActorContext(effective_user=make_user("p"))}

        assert await middleware(handler, MagicMock(), data) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unlinked_account_is_refused(self):
        middleware = AdminAuthMiddleware(allowed_telegram_ids=[])
        handler = AsyncMock()

        assert await middleware(handler, MagicMock(), {"actor": None}) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_impersonating_admin_keeps_access(self, make_user):
        middleware = AdminAuthMiddleware(allowed_telegram_ids=[])
        handler = AsyncMock(return_value="ok")
        actor = ActorContext(
            effective_user=make_user("p"),
            acting_admin=make_user("a", is_admin=True),
            is_impersonating=True,
        )

        assert await middleware(handler, MagicMock(), {"actor": actor}) == "ok"

    @pytest.mark.asyncio
    async def test_allow_list_is_enforced(self, make_user):
        middleware = AdminAuthMiddleware(allowed_telegram_ids=[111])
        handler = AsyncMock()
        data = {
            "actor": ActorContext(effective_user=make_user("a", is_admin=True)),
            "event_from_user": MagicMock(id=222),
        }

        assert await middleware(handler, MagicMock(), data) is None
        handler.assert_not_awaited()


class TestActorContextMiddleware:
    """Actor context from FSM data."""

    @pytest.fixture
    def state(self):
        state = AsyncMock()
        state.get_data = AsyncMock(return_value={})
        return state

    @pytest.mark.asyncio
    async def test_links_telegram_account(self, mock_session, state, make_user):
        user = make_user("u1", telegram_id=42)
        handler = AsyncMock()
        data = {
            "session": mock_session,
            "state": state,
            "event_from_user": MagicMock(id=42),
        }

        with patch(
            "bot.middlewares.actor_context.UserRepository"
        ) as repo_cls:
            repo_cls.return_value.get_by_telegram_id = AsyncMock(return_value=user)
            repo_cls.return_value.get_by_id = AsyncMock(return_value=user)
            await ActorContextMiddleware()(handler, MagicMock(), data)

        state.update_data.assert_awaited_once_with({SESSION_USER_ID: "u1"})
        assert data["actor"].effective_user is user

    @pytest.mark.asyncio
    async def test_clears_invalid_impersonation(self, mock_session, state, make_user):
        user = make_user("u1")
        stored = {
            SESSION_USER_ID: "u1",
            SESSION_IMPERSONATED_USER_ID: "x",
            SESSION_REAL_ADMIN_ID: "u1",
        }
        state.get_data = AsyncMock(return_value=stored)
        handler = AsyncMock()
        data = {"session": mock_session, "state": state}

        resolution = ContextResolution(
            ActorContext(effective_user=user), clear_impersonation=True
        )
        with patch(
            "bot.middlewares.actor_context.resolve_actor_context",
            AsyncMock(return_value=resolution),
        ):
            await ActorContextMiddleware()(handler, MagicMock(), data)

        state.set_data.assert_awaited_once_with({SESSION_USER_ID: "u1"})
        assert data["actor"].effective_user is user
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_state_actor_is_none(self):
        handler = AsyncMock()
        data = {}

        await ActorContextMiddleware()(handler, MagicMock(), data)

        assert data["actor"] is None
        handler.assert_awaited_once()
