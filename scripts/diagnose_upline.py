#!/usr/bin/env python3
"""
Diagnose a partner's upline.

Prints the live parent_partner_id chain, the cached partner_hierarchy rows
and a per-level drift report for one user. Read-only.

Usage:
    python scripts/diagnose_upline.py --user <id | email | partner id | code>

Exit code 1 when the user is missing or the hierarchy is inconsistent.
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger  # noqa: E402

from app.config.database import async_session_maker, engine  # noqa: E402
from app.config.settings import settings  # noqa: E402
from app.repositories.partner_hierarchy_repository import (  # noqa: E402
    PartnerHierarchyRepository,
)
from app.repositories.user_repository import UserRepository  # noqa: E402
from app.services.hierarchy import (  # noqa: E402
    HierarchyReconciler,
    HierarchyResolver,
)
from app.utils.exceptions import HierarchyError  # noqa: E402
from bot.utils.formatters import (  # noqa: E402
    format_downline,
    format_drift_report,
    format_upline,
)


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def diagnose(identifier: str) -> bool:
    """
    Print everything known about a user's upline.

    Returns:
        True if the hierarchy is consistent
    """
    async with async_session_maker() as session:
        user = await UserRepository(session).resolve(identifier)
        if user is None:
            logger.error(f"User not found: {identifier}")
            return False

        logger.info(f"Diagnosing upline of {user.email} ({user.id})")
        logger.info(f"Parent partner id: {user.parent_partner_id or 'NULL'}")

        resolver = HierarchyResolver(session)
        upline = await resolver.get_upline(
            user.id, max_depth=settings.hierarchy_cache_depth
        )
        print(format_upline(upline))

        rows = await PartnerHierarchyRepository(session).get_for_child(user.id)
        print(f"\nCached rows: {len(rows)}")
        for row in rows:
            print(f"  Level {row.level}: {row.parent_id}")

        tree = await resolver.get_downline(user.id, max_depth=1)
        print()
        print(format_downline(tree))

        try:
            report = await HierarchyReconciler(session).diagnose(user.id)
        except HierarchyError as e:
            logger.error(f"Diagnosis failed: {e}")
            return False

        print()
        print(format_drift_report(report))
        return report.is_consistent


async def main() -> int:
    parser = argparse.ArgumentParser(description="Diagnose a partner's upline")
    parser.add_argument(
        "--user", required=True, help="User id, email, partner id or referral code"
    )
    args = parser.parse_args()

    try:
        consistent = await diagnose(args.user)
    finally:
        await engine.dispose()

    if consistent:
        logger.success("Hierarchy is consistent")
        return 0
    logger.warning("Hierarchy needs attention (see fix_user_upline.py / rebuild_hierarchy.py)")
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
