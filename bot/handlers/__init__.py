"""
Handlers.

Bot command and message handlers.
"""

from bot.handlers import help


__all__ = ["help"]
