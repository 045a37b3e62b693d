"""
Hierarchy cache builder.

Derives partner_hierarchy rows from the live parent_partner_id chain.
A user's rows are always replaced as a whole (DELETE + INSERT in one
transaction), never patched.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.repositories.partner_hierarchy_repository import (
    PartnerHierarchyRepository,
)
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService, log_operation, transaction
from app.services.hierarchy.resolver import HierarchyResolver
from app.services.hierarchy.traversal import (
    UserLink,
    mapping_children_fetcher,
    mapping_link_fetcher,
    walk_downline,
    walk_upline,
)
from app.utils.exceptions import (
    CycleDetectedError,
    DanglingReferenceError,
    TargetNotFoundError,
)


@dataclass
class RebuildResult:
    """Outcome of rebuilding one user's cache rows."""

    user_id: str
    ancestor_ids: list[str] = field(default_factory=list)
    dangling: DanglingReferenceError | None = None
    cycle: CycleDetectedError | None = None

    @property
    def rows_written(self) -> int:
        """Number of cache rows written for the user."""
        return len(self.ancestor_ids)


@dataclass
class RebuildSummary:
    """Outcome of a full rebuild."""

    users_processed: int = 0
    rows_written: int = 0
    dangling_user_ids: list[str] = field(default_factory=list)
    cycle_user_ids: list[str] = field(default_factory=list)
    failed_user_ids: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when no user failed to rebuild."""
        return not self.failed_user_ids


class HierarchyCacheBuilder(BaseService):
    """Rebuilds partner_hierarchy rows from the parent_partner_id chain."""

    def __init__(
        self, session: AsyncSession, max_depth: int | None = None
    ) -> None:
        """
        Initialize cache builder.

        Args:
            session: Async database session
            max_depth: Levels stored per user (defaults to
                HIERARCHY_CACHE_DEPTH, unset = full chain)
        """
        super().__init__(session)
        self.max_depth = (
            max_depth if max_depth is not None else settings.hierarchy_cache_depth
        )
        self.user_repo = UserRepository(session)
        self.hierarchy_repo = PartnerHierarchyRepository(session)
        self.resolver = HierarchyResolver(session)

    @transaction
    async def rebuild_hierarchy_for(self, user_id: str) -> RebuildResult:
        """
        Replace a user's cached rows with its live upline, atomically.

        Args:
            user_id: User whose rows are rebuilt

        Returns:
            RebuildResult with the ancestors written

        Raises:
            TargetNotFoundError: If the user does not exist
        """
        return await self.replace_entries(user_id)

    async def replace_entries(self, user_id: str) -> RebuildResult:
        """
        Rebuild one user's rows inside the caller's transaction.

        Args:
            user_id: User whose rows are rebuilt

        Returns:
            RebuildResult with the ancestors written
        """
        upline = await self.resolver.get_upline(user_id, max_depth=self.max_depth)
        await self.hierarchy_repo.replace_for_child(user_id, upline.ids)

        self.logger.debug(
            f"Hierarchy rebuilt for {user_id}",
            extra={"user_id": user_id, "levels": len(upline)},
        )
        return RebuildResult(
            user_id=user_id,
            ancestor_ids=upline.ids,
            dangling=upline.dangling,
            cycle=upline.cycle,
        )

    async def rebuild_subtree(self, user_id: str) -> list[RebuildResult]:
        """
        Rebuild a user and its whole downline inside the caller's transaction.

        Every descendant's upline passes through the user, so after a
        re-link all of them are stale. Uses one parent-map query and walks
        it in memory.

        Args:
            user_id: Root of the subtree

        Returns:
            One RebuildResult per rebuilt user, root first

        Raises:
            TargetNotFoundError: If the user does not exist
        """
        parents = await self.user_repo.get_parent_links()
        if user_id not in parents:
            raise TargetNotFoundError(user_id)

        downline = await walk_downline(user_id, mapping_children_fetcher(parents))
        results = [
            await self._replace_from_map(member_id, parents)
            for member_id in downline.levels
        ]

        self.logger.info(
            f"Hierarchy subtree rebuilt for {user_id}",
            extra={"user_id": user_id, "users": len(results)},
        )
        return results

    @log_operation
    async def rebuild_all(
        self, user_ids: Iterable[str] | None = None
    ) -> RebuildSummary:
        """
        Rebuild the cache for every user (or the given ones).

        Loads the parent map once, then commits per user so each user's
        swap is atomic on its own. A failure on one user is rolled back,
        logged and counted; the run continues. Pointers changed by other
        writers during the run leave transient drift that the next run
        corrects.

        Args:
            user_ids: Restrict the run to these users

        Returns:
            RebuildSummary
        """
        parents = await self.user_repo.get_parent_links()
        targets = list(user_ids) if user_ids is not None else sorted(parents)
        summary = RebuildSummary()

        for user_id in targets:
            if user_id not in parents:
                self.logger.warning(f"Skipping unknown user {user_id}")
                summary.failed_user_ids.append(user_id)
                continue
            try:
                result = await self._replace_from_map(user_id, parents)
                await self.commit()
            except Exception as e:
                await self.rollback()
                self.logger.error(
                    f"Hierarchy rebuild failed for {user_id}: {e}",
                    extra={"user_id": user_id, "error_type": type(e).__name__},
                )
                summary.failed_user_ids.append(user_id)
                continue

            summary.users_processed += 1
            summary.rows_written += result.rows_written
            if result.dangling is not None:
                summary.dangling_user_ids.append(user_id)
            if result.cycle is not None:
                summary.cycle_user_ids.append(user_id)

        self.logger.info(
            "Full hierarchy rebuild finished",
            extra={
                "users_processed": summary.users_processed,
                "rows_written": summary.rows_written,
                "dangling": len(summary.dangling_user_ids),
                "cycles": len(summary.cycle_user_ids),
                "failed": len(summary.failed_user_ids),
            },
        )
        return summary

    async def _replace_from_map(
        self, user_id: str, parents: Mapping[str, str | None]
    ) -> RebuildResult:
        """Rebuild one user's rows from an in-memory parent map."""
        walk = await walk_upline(
            UserLink(user_id, parents[user_id]),
            mapping_link_fetcher(parents),
            max_depth=self.max_depth,
        )
        await self.hierarchy_repo.replace_for_child(user_id, walk.ancestor_ids)

        if not walk.is_complete:
            finding = walk.dangling or walk.cycle
            self.logger.warning(
                f"Hierarchy for {user_id} written up to a broken link: {finding}",
                extra={"user_id": user_id, "finding": finding.reason},
            )

        return RebuildResult(
            user_id=user_id,
            ancestor_ids=walk.ancestor_ids,
            dangling=walk.dangling,
            cycle=walk.cycle,
        )
