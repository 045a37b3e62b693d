"""
Global Error Handler Middleware.

Catches unhandled exceptions, logs them and tells the user something went
wrong without technical details.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware, Bot
from aiogram.types import TelegramObject, User
from loguru import logger


class ErrorHandlerMiddleware(BaseMiddleware):
    """Global error handler middleware."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Execute middleware."""
        try:
            return await handler(event, data)
        except Exception as e:
            logger.exception(f"Unhandled exception: {e}")

            bot: Bot | None = data.get("bot")
            user: User | None = data.get("event_from_user")
            if bot and user:
                try:
                    await bot.send_message(
                        chat_id=user.id,
                        text="❌ Something went wrong. The error has been logged.",
                    )
                except Exception as notify_error:
                    logger.warning(f"Failed to notify user: {notify_error}")

            return None
