"""
Admin authentication middleware.

Lets an update through to admin routers only when the real actor behind
it is a CRM admin. When ADMIN_TELEGRAM_IDS is configured the Telegram
account must also be listed there.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject
from loguru import logger

from app.config.settings import settings
from app.services.actor_context import ActorContext


class AdminAuthMiddleware(BaseMiddleware):
    """Rejects updates whose actor is not an admin."""

    def __init__(self, allowed_telegram_ids: list[int] | None = None) -> None:
        """
        Initialize admin auth middleware.

        Args:
            allowed_telegram_ids: Telegram allow-list (defaults to
                ADMIN_TELEGRAM_IDS, empty = any admin account)
        """
        super().__init__()
        self.allowed_telegram_ids = (
            allowed_telegram_ids
            if allowed_telegram_ids is not None
            else settings.get_admin_ids()
        )

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """
        Check that the actor is an admin.

        Args:
            handler: Next handler
            event: Telegram event
            data: Handler data

        Returns:
            Handler result, or None when access is denied
        """
        actor: ActorContext | None = data.get("actor")
        telegram_user = data.get("event_from_user")
        telegram_id = telegram_user.id if telegram_user else None

        allowed = actor is not None and actor.is_admin
        if allowed and self.allowed_telegram_ids:
            allowed = telegram_id in self.allowed_telegram_ids

        if not allowed:
            logger.warning(
                f"Admin command refused for telegram_id={telegram_id}",
                extra={"telegram_id": telegram_id},
            )
            await self._deny(event)
            return None

        return await handler(event, data)

    async def _deny(self, event: TelegramObject) -> None:
        """Tell the user access is denied."""
        if isinstance(event, Message):
            await event.answer("🚫 Access denied: admin account required.")
        elif isinstance(event, CallbackQuery):
            await event.answer("🚫 Access denied.", show_alert=True)
