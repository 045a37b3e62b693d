"""
Deal repository.

Data access layer for Deal model.
"""

from collections.abc import Iterable

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import APPROVED_DEAL_STATUSES
from app.models.deal import Deal
from app.repositories.base import BaseRepository
from app.utils.datetime_utils import utc_now


class DealRepository(BaseRepository[Deal]):
    """Deal repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize deal repository."""
        super().__init__(Deal, session)

    async def set_parent_referrer(
        self, referrer_id: str, parent_referrer_id: str | None
    ) -> int:
        """
        Re-point the denormalized upline beneficiary of a partner's deals.

        Args:
            referrer_id: Submitting user ID
            parent_referrer_id: New direct upline (or None)

        Returns:
            Number of deals updated
        """
        stmt = (
            update(Deal)
            .where(Deal.referrer_id == referrer_id)
            .values(parent_referrer_id=parent_referrer_id, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def get_deal_counts(
        self, referrer_ids: Iterable[str]
    ) -> dict[str, tuple[int, int]]:
        """
        Total and approved deal counts per partner in a single query.

        Args:
            referrer_ids: Submitting user IDs

        Returns:
            Dict mapping referrer ID to (total, approved)
        """
        referrer_ids = list(referrer_ids)
        if not referrer_ids:
            return {}

        approved = func.sum(
            case((Deal.status.in_(APPROVED_DEAL_STATUSES), 1), else_=0)
        )
        stmt = (
            select(
                Deal.referrer_id,
                func.count(Deal.id).label("total"),
                approved.label("approved"),
            )
            .where(Deal.referrer_id.in_(referrer_ids))
            .group_by(Deal.referrer_id)
        )
        result = await self.session.execute(stmt)
        return {
            row.referrer_id: (row.total, int(row.approved or 0))
            for row in result.all()
        }
