"""
Partner hierarchy repository.

Data access layer for the partner_hierarchy cache table.
"""

from collections.abc import Iterable, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import HIERARCHY_INSERT_BATCH_SIZE
from app.models.partner_hierarchy import PartnerHierarchy
from app.models.user import User
from app.repositories.base import BaseRepository


class PartnerHierarchyRepository(BaseRepository[PartnerHierarchy]):
    """Partner hierarchy repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize partner hierarchy repository."""
        super().__init__(PartnerHierarchy, session)

    async def get_for_child(
        self, child_id: str, max_level: int | None = None
    ) -> list[PartnerHierarchy]:
        """
        Cached ancestors of a user.

        Args:
            child_id: Descendant user ID
            max_level: Optional upper bound on level

        Returns:
            Rows ordered by level (nearest ancestor first)
        """
        stmt = select(PartnerHierarchy).where(
            PartnerHierarchy.child_id == child_id
        )
        if max_level is not None:
            stmt = stmt.where(PartnerHierarchy.level <= max_level)
        stmt = stmt.order_by(PartnerHierarchy.level, PartnerHierarchy.id)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_level_counts(self, parent_id: str) -> dict[int, int]:
        """
        Downline size per level in a single query.

        Args:
            parent_id: Ancestor user ID

        Returns:
            Dict mapping level to count
        """
        stmt = (
            select(
                PartnerHierarchy.level,
                func.count(PartnerHierarchy.id).label("count"),
            )
            .where(PartnerHierarchy.parent_id == parent_id)
            .group_by(PartnerHierarchy.level)
            .order_by(PartnerHierarchy.level)
        )
        result = await self.session.execute(stmt)
        return {row.level: row.count for row in result.all()}

    async def replace_for_child(
        self, child_id: str, ancestor_ids: Sequence[str]
    ) -> int:
        """
        Replace every cached row of a user with a fresh chain.

        DELETE followed by batched INSERT; the caller's transaction makes
        the swap atomic.

        Args:
            child_id: Descendant user ID
            ancestor_ids: Live upline, nearest first

        Returns:
            Number of rows written
        """
        await self.session.execute(
            delete(PartnerHierarchy).where(
                PartnerHierarchy.child_id == child_id
            )
        )

        rows = [
            {"child_id": child_id, "parent_id": parent_id, "level": level}
            for level, parent_id in enumerate(ancestor_ids, start=1)
        ]
        for start in range(0, len(rows), HIERARCHY_INSERT_BATCH_SIZE):
            batch = rows[start:start + HIERARCHY_INSERT_BATCH_SIZE]
            await self.session.execute(insert(PartnerHierarchy).values(batch))

        return len(rows)

    async def find_orphaned_child_ids(self) -> list[str]:
        """
        Child IDs that have cache rows but no user row.

        Returns:
            Distinct orphaned child IDs
        """
        stmt = (
            select(PartnerHierarchy.child_id)
            .outerjoin(User, User.id == PartnerHierarchy.child_id)
            .where(User.id.is_(None))
            .distinct()
        )
        result = await self.session.execute(stmt)
        return [row[0] for row in result.all()]

    async def delete_for_children(self, child_ids: Iterable[str]) -> int:
        """
        Drop every cached row of the given children.

        Args:
            child_ids: Descendant user IDs

        Returns:
            Number of rows deleted
        """
        child_ids = list(child_ids)
        if not child_ids:
            return 0
        result = await self.session.execute(
            delete(PartnerHierarchy).where(
                PartnerHierarchy.child_id.in_(child_ids)
            )
        )
        return result.rowcount
