"""
Bot Initialization - Shutdown Module.

Module: shutdown.py
Handles graceful shutdown of the bot.
Closes database connections.
"""

from loguru import logger


async def shutdown_handler() -> None:
    """Handle graceful shutdown."""
    logger.info("Graceful shutdown initiated...")

    try:
        from app.config.database import engine
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Graceful shutdown complete")
