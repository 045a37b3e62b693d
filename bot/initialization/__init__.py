"""
Bot Initialization Module.

This module contains all initialization logic split into focused modules:
- logging: Logger configuration
- storage: FSM storage setup (Redis/memory)
- middlewares: Middleware registration
- handlers: Handler registration (user and admin)
- shutdown: Graceful shutdown handler
"""

__all__ = []
