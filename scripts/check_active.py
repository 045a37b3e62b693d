#!/usr/bin/env python3
"""
Check which partners in a team are active.

A partner is active once at least one of their deals is approved, live or
completed.

Usage:
    python scripts/check_active.py --user <id | email | partner id | code>
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from app.config.database import async_session_maker, engine  # noqa: E402
from app.repositories.user_repository import UserRepository  # noqa: E402
from app.services.team_service import TeamActivityService  # noqa: E402
from bot.utils.formatters import format_team_activity  # noqa: E402


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def check(identifier: str) -> bool:
    async with async_session_maker() as session:
        user = await UserRepository(session).resolve(identifier)
        if user is None:
            logger.error(f"User not found: {identifier}")
            return False

        activity = await TeamActivityService(session).get_team_activity(user.id)
        print(format_team_activity(activity))

        if activity.members and not activity.active_count:
            logger.info(
                "Nobody is active yet: a partner needs a deal with status "
                "approved, live or completed"
            )
        return True


async def main() -> int:
    parser = argparse.ArgumentParser(description="Check team activity")
    parser.add_argument("--user", required=True, help="Sponsor to check")
    args = parser.parse_args()

    try:
        ok = await check(args.user)
    finally:
        await engine.dispose()

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
