#!/usr/bin/env python3
"""
Correct a partner's upline.

Re-points a user at the right sponsor and rebuilds the hierarchy cache for
the user and its downline. With --ancestor the sponsor itself is re-pointed
first, for chains where the intermediate link is wrong too. Deals submitted
by re-linked partners get their parent referrer updated. All or nothing.

Usage:
    python scripts/fix_user_upline.py --user <user> --parent <sponsor | root>
        [--ancestor <sponsor's sponsor>] [--dry-run]

Users can be given as id, email, partner id or referral code.
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
    HierarchyReconciler,
    HierarchyWriter,
)
from app.utils.exceptions import HierarchyError  # noqa: E402
from bot.utils.formatters import format_repair_result  # noqa: E402


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")

ROOT_KEYWORDS = ("root", "none")


async def fix_upline(
    user_ref: str,
    parent_ref: str,
    ancestor_ref: str | None,
    dry_run: bool,
) -> bool:
    """
    Resolve the operands and apply (or preview) the correction.

    Returns:
        True on success
    """
    async with async_session_maker() as session:
        user_repo = UserRepository(session)

        user = await user_repo.resolve(user_ref)
        if user is None:
            logger.error(f"User not found: {user_ref}")
            return False
        logger.info(f"User: {user.email} ({user.id}), current parent: {user.parent_partner_id or 'NULL'}")

        parent_id = None
        if parent_ref.lower() not in ROOT_KEYWORDS:
            parent = await user_repo.resolve(parent_ref)
            if parent is None:
                logger.error(f"Sponsor not found: {parent_ref}")
                return False
            parent_id = parent.id
            logger.info(f"New sponsor: {parent.email} ({parent.id}), its parent: {parent.parent_partner_id or 'NULL'}")

        ancestor_id = None
        if ancestor_ref:
            if parent_id is None:
                logger.error("--ancestor needs a sponsor, not root")
                return False
            ancestor = await user_repo.resolve(ancestor_ref)
            if ancestor is None:
                logger.error(f"Ancestor not found: {ancestor_ref}")
                return False
            ancestor_id = ancestor.id
            logger.info(f"Sponsor's new parent: {ancestor.email} ({ancestor.id})")

        if dry_run:
            writer = HierarchyWriter(session)
            try:
                if ancestor_id is not None:
                    await writer.ensure_acyclic(parent_id, ancestor_id)
                if parent_id is not None:
                    await writer.ensure_acyclic(user.id, parent_id)
            except HierarchyError as e:
                logger.error(f"Correction would be refused: {e}")
                return False
            logger.info("DRY RUN: no cycle would form, nothing written")
            return True

        try:
            result = await HierarchyReconciler(session).repair(
                user.id, parent_id, ancestor_id=ancestor_id
            )
        except HierarchyError as e:
            logger.error(f"Repair failed ({e.reason}): {e}")
            return False

        print(format_repair_result(result))
        return result.report is None or result.report.is_consistent


async def main() -> int:
    parser = argparse.ArgumentParser(description="Correct a partner's upline")
    parser.add_argument("--user", required=True, help="User to fix")
    parser.add_argument(
        "--parent", required=True, help="Correct direct sponsor, or 'root'"
    )
    parser.add_argument(
        "--ancestor", help="Correct sponsor of the sponsor (fixes the intermediate link)"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Validate without writing"
    )
    args = parser.parse_args()

    try:
        ok = await fix_upline(args.user, args.parent, args.ancestor, args.dry_run)
    finally:
        await engine.dispose()

    if ok:
        logger.success("Fix complete!")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
