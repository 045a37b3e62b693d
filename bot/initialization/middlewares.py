"""
Bot Initialization - Middlewares Module.

Module: middlewares.py
Registers all bot middlewares in the correct order.
Order is critical for proper request processing.
"""

from aiogram import Dispatcher
from loguru import logger

from app.config.database import async_session_maker
from bot.middlewares.actor_context import ActorContextMiddleware
from bot.middlewares.database import DatabaseMiddleware
from bot.middlewares.error_handler import ErrorHandlerMiddleware


def register_middlewares(dp: Dispatcher) -> None:
    """
    Register all middlewares.

    Middleware order is critical:
    1. Error handler
    2. Database (session for everything below)
    3. Actor context (needs the session and FSM state)

    Args:
        dp: Dispatcher instance
    """
    dp.update.middleware(ErrorHandlerMiddleware())
    dp.update.middleware(DatabaseMiddleware(session_pool=async_session_maker))
    dp.update.middleware(ActorContextMiddleware())

    logger.info("Middlewares registered successfully")
