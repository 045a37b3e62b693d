#!/usr/bin/env python3
"""
Rebuild the partner_hierarchy cache.

Usage:
    python scripts/rebuild_hierarchy.py --all [--purge-orphans]
    python scripts/rebuild_hierarchy.py --user <id | email | code> [--subtree]

--all rebuilds every user, committing per user; a failure on one user is
logged and the run continues. --purge-orphans deletes rows whose child user
no longer exists. --subtree also rebuilds the user's downline.
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
from app.services.hierarchy import (  # noqa: E402
    HierarchyCacheBuilder,
    HierarchyReconciler,
)
from app.utils.exceptions import HierarchyError  # noqa: E402
from bot.utils.formatters import format_rebuild_summary  # noqa: E402


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def rebuild_all(purge_orphans: bool) -> bool:
    """Rebuild every user's rows."""
    async with async_session_maker() as session:
        if purge_orphans:
            deleted = await HierarchyReconciler(session).purge_orphaned_rows()
            logger.info(f"Purged {deleted} orphaned row(s)")

        summary = await HierarchyCacheBuilder(session).rebuild_all()
        print(format_rebuild_summary(summary))
        return summary.success


async def rebuild_user(identifier: str, subtree: bool) -> bool:
    """Rebuild one user's rows, optionally with its downline."""
    async with async_session_maker() as session:
        user = await UserRepository(session).resolve(identifier)
        if user is None:
            logger.error(f"User not found: {identifier}")
            return False

        builder = HierarchyCacheBuilder(session)
        user_id = user.id
        try:
            if subtree:
                results = await builder.rebuild_subtree(user_id)
                await session.commit()
            else:
                results = [await builder.rebuild_hierarchy_for(user_id)]
        except HierarchyError as e:
            await session.rollback()
            logger.error(f"Rebuild failed: {e}")
            return False

        for result in results:
            logger.info(
                f"{result.user_id}: {result.rows_written} row(s) "
                f"{' -> '.join(result.ancestor_ids) or '(root)'}"
            )
            finding = result.dangling or result.cycle
            if finding:
                logger.warning(f"{result.user_id}: {finding}")
        return True


async def main() -> int:
    parser = argparse.ArgumentParser(description="Rebuild the partner hierarchy cache")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", help="Rebuild every user")
    target.add_argument("--user", help="Rebuild one user")
    parser.add_argument(
        "--subtree", action="store_true", help="With --user: include the downline"
    )
    parser.add_argument(
        "--purge-orphans",
        action="store_true",
        help="With --all: delete rows of users that no longer exist",
    )
    args = parser.parse_args()

    try:
        if args.all:
            ok = await rebuild_all(args.purge_orphans)
        else:
            ok = await rebuild_user(args.user, args.subtree)
    finally:
        await engine.dispose()

    if ok:
        logger.success("Rebuild complete!")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
