"""
Bot Initialization - Storage Module.

Module: storage.py
Sets up FSM storage, which also holds the per-chat session values
(user_id and the impersonation keys). Redis when REDIS_URL is set,
in-memory otherwise.
"""

from aiogram.fsm.storage.base import BaseStorage
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage
from loguru import logger
from redis.asyncio import Redis

from app.config.settings import settings


async def setup_fsm_storage() -> tuple[BaseStorage, Redis | None]:
    """
    Set up FSM storage with Redis (fallback to memory).

    Returns:
        Tuple of (storage, redis_client)
    """
    if not settings.redis_url:
        logger.warning("REDIS_URL not set, session state will not survive restarts")
        return MemoryStorage(), None

    redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis_client.ping()
    except Exception as e:
        logger.error(f"Failed to connect to Redis for FSM storage: {e}")
        await redis_client.aclose()
        logger.warning("Falling back to in-memory FSM storage")
        return MemoryStorage(), None

    logger.info("Redis connection established for FSM storage")
    return RedisStorage(redis=redis_client), redis_client
