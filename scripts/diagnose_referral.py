#!/usr/bin/env python3
"""
Referral link diagnostic.

Explains why a partner does not show up on their referrer's dashboard:
checks the referral code, the partner's parent link, the referrer's direct
team and the cached hierarchy rows. Read-only.

Usage:
    python scripts/diagnose_referral.py --code <referral code> [--user <user>]
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from app.config.database import async_session_maker, engine  # noqa: E402
from app.repositories.partner_hierarchy_repository import (  # noqa: E402
    PartnerHierarchyRepository,
)
from app.repositories.user_repository import UserRepository  # noqa: E402
from app.services.hierarchy import HierarchyResolver  # noqa: E402
from bot.utils.formatters import format_user  # noqa: E402


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def diagnose(code: str, user_ref: str | None) -> bool:
    """
    Walk through the referral checks in order.

    Returns:
        True if no problem was found
    """
    async with async_session_maker() as session:
        user_repo = UserRepository(session)

        logger.info(f"STEP 1: looking for the owner of referral code {code!r}")
        referrer = await HierarchyResolver(session).find_by_referral_code(code)
        if referrer is None:
            logger.error(f"No user has referral code {code!r}; the signup link cannot attach anyone")
            similar = await user_repo.find_referral_codes_like(code[:2])
            if similar:
                logger.info("Similar codes:")
                for user in similar:
                    logger.info(f"  - {user.referral_code} ({user.email})")
            else:
                logger.info(f"No codes start with {code[:2]!r}")
            return False
        logger.info(f"Referrer: {format_user(referrer)} code={referrer.referral_code}")

        team = await user_repo.get_children(referrer.id)
        logger.info(f"Referrer has {len(team)} direct partner(s)")
        for member in team:
            logger.info(f"  - {format_user(member)}")

        if user_ref is None:
            return True

        logger.info(f"STEP 2: looking for user {user_ref!r}")
        user = await user_repo.resolve(user_ref)
        if user is None:
            logger.error(f"User not found: {user_ref}")
            return False
        logger.info(f"User: {format_user(user)}, parent: {user.parent_partner_id or 'NULL'}")

        logger.info("STEP 3: checking the parent link")
        ok = True
        if user.parent_partner_id != referrer.id:
            logger.error(
                f"User's parent_partner_id is {user.parent_partner_id or 'NULL'}, "
                f"expected {referrer.id}"
            )
            logger.info(
                f"Fix: python scripts/fix_user_upline.py --user {user.id} --parent {referrer.id}"
            )
            ok = False
        else:
            logger.success("User is linked to the referrer")

        logger.info("STEP 4: checking partner_hierarchy")
        rows = await PartnerHierarchyRepository(session).get_for_child(user.id)
        level_one = next((row for row in rows if row.level == 1), None)
        if level_one is None:
            logger.error("No level 1 hierarchy row for the user")
            logger.info(f"Fix: python scripts/rebuild_hierarchy.py --user {user.id}")
            ok = False
        elif level_one.parent_id != user.parent_partner_id:
            logger.error(
                f"Level 1 row points at {level_one.parent_id}, "
                f"live parent is {user.parent_partner_id or 'NULL'}"
            )
            logger.info(f"Fix: python scripts/rebuild_hierarchy.py --user {user.id}")
            ok = False
        else:
            logger.success(f"{len(rows)} hierarchy row(s), level 1 matches")

        return ok


async def main() -> int:
    parser = argparse.ArgumentParser(description="Diagnose a referral link")
    parser.add_argument("--code", required=True, help="Referral code used at signup")
    parser.add_argument("--user", help="Partner who signed up with the code")
    args = parser.parse_args()

    try:
        ok = await diagnose(args.code, args.user)
    finally:
        await engine.dispose()

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
