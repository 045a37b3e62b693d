"""
Actor context middleware.

Resolves who an update acts as before any handler runs. Session values
live in the FSM storage of the chat; a Telegram account without a stored
user_id is matched to a CRM user through users.telegram_id.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.fsm.context import FSMContext
from aiogram.types import TelegramObject, User as TelegramUser
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.user_repository import UserRepository
from app.services.actor_context import (
    SESSION_USER_ID,
    resolve_actor_context,
    stop_impersonation,
)


class ActorContextMiddleware(BaseMiddleware):
    """Puts an ActorContext (or None) into handler data as "actor"."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """
        Resolve the actor context for this update.

        Args:
            handler: Next handler
            event: Telegram event
            data: Handler data

        Returns:
            Handler result
        """
        session: AsyncSession | None = data.get("session")
        state: FSMContext | None = data.get("state")
        telegram_user: TelegramUser | None = data.get("event_from_user")

        if session is None or state is None:
            data["actor"] = None
            return await handler(event, data)

        user_repo = UserRepository(session)
        state_data = await state.get_data()

        if not state_data.get(SESSION_USER_ID) and telegram_user is not None:
            user = await user_repo.get_by_telegram_id(telegram_user.id)
            if user is not None:
                state_data = {**state_data, SESSION_USER_ID: user.id}
                await state.update_data({SESSION_USER_ID: user.id})

        resolution = await resolve_actor_context(user_repo, state_data)
        if resolution.clear_impersonation:
            await state.set_data(stop_impersonation(state_data))
            logger.info(
                "Cleared invalid impersonation state",
                extra={"telegram_id": telegram_user.id if telegram_user else None},
            )

        data["actor"] = resolution.context
        return await handler(event, data)
