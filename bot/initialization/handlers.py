"""
Bot Initialization - Handlers Module.

Module: handlers.py
Registers all bot handlers (user and admin).
Handler order matters for proper routing.
"""

from aiogram import Dispatcher
from loguru import logger

from bot.middlewares.admin_auth_middleware import AdminAuthMiddleware


def register_user_handlers(dp: Dispatcher) -> None:
    """Register handlers available to every account."""
    from bot.handlers import help

    dp.include_router(help.router)

    logger.info("User handlers registered successfully")


def register_admin_handlers(dp: Dispatcher) -> None:
    """Register all admin handlers with authentication middleware."""
    from bot.handlers.admin import hierarchy

    admin_auth_middleware = AdminAuthMiddleware()
    hierarchy.router.message.middleware(admin_auth_middleware)
    dp.include_router(hierarchy.router)

    logger.info("Admin handlers registered successfully")


def register_all_handlers(dp: Dispatcher) -> None:
    """Register all handlers in order."""
    register_admin_handlers(dp)
    register_user_handlers(dp)
