"""
Middlewares.

Bot middlewares for request processing.
"""

from bot.middlewares.actor_context import ActorContextMiddleware
from bot.middlewares.admin_auth_middleware import AdminAuthMiddleware
from bot.middlewares.database import DatabaseMiddleware
from bot.middlewares.error_handler import ErrorHandlerMiddleware


__all__ = [
    "ActorContextMiddleware",
    "AdminAuthMiddleware",
    "DatabaseMiddleware",
    "ErrorHandlerMiddleware",
]
