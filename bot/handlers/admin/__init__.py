"""Admin handlers package"""

from bot.handlers.admin import hierarchy


__all__ = ["hierarchy"]
