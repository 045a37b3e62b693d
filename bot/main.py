"""
Bot main entry point.

Initializes and runs the partner hierarchy admin bot with aiogram 3.x.
Initialization is delegated to the modules in bot/initialization/.
"""

import asyncio
import sys
from pathlib import Path

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import ErrorEvent
from loguru import logger


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config.settings import settings  # noqa: E402
from bot.initialization.handlers import register_all_handlers  # noqa: E402
from bot.initialization.logging import setup_logging  # noqa: E402
from bot.initialization.middlewares import register_middlewares  # noqa: E402
from bot.initialization.shutdown import shutdown_handler  # noqa: E402
from bot.initialization.storage import setup_fsm_storage  # noqa: E402


async def main() -> None:
    """Initialize and run the bot."""
    setup_logging()

    if not settings.telegram_bot_token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not configured")

    storage, redis_client = await setup_fsm_storage()

    # Replies are plain text: user names and IDs are never escaped for markup
    bot = Bot(
        token=settings.telegram_bot_token,
        default=DefaultBotProperties(),
    )
    dp = Dispatcher(storage=storage)

    register_middlewares(dp)

    @dp.error()
    async def error_handler(event: ErrorEvent) -> bool:
        """Global error handler for unhandled exceptions."""
        logger.exception(
            f"Unhandled error in bot: {event.exception.__class__.__name__}: {event.exception}",
            extra={"update": str(event.update) if event.update else None},
        )
        return True

    register_all_handlers(dp)

    try:
        bot_info = await bot.get_me()
        logger.info(f"Bot connected: @{bot_info.username} (ID: {bot_info.id})")
    except Exception as e:
        logger.error(f"Failed to connect to Telegram API: {e}")
        raise

    try:
        logger.info("Starting polling...")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    except Exception as e:
        logger.exception(f"Polling error: {e}")
        raise
    finally:
        await shutdown_handler()
        if redis_client:
            await redis_client.aclose()
        await bot.session.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Bot crashed: {e}")
        sys.exit(1)
