"""
Deal parent-referrer synchronisation.

Deals carry a denormalized copy of the submitting partner's direct upline
(parent_referrer_id). When the hierarchy writer re-links a partner, the
collaborator registered here re-derives that copy in the same transaction.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.deal_repository import DealRepository
from app.services.base_service import BaseService


class DealParentSync(Protocol):
    """Collaborator notified when a partner's direct parent changes."""

    async def parent_changed(
        self, user_id: str, new_parent_id: str | None
    ) -> int:
        """Re-derive deal denormalizations; return deals touched."""
        ...


class DealReferrerSync(BaseService):
    """Default collaborator: re-points parent_referrer_id on the partner's deals."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize deal sync."""
        super().__init__(session)
        self.deal_repo = DealRepository(session)

    async def parent_changed(
        self, user_id: str, new_parent_id: str | None
    ) -> int:
        """
        Point every deal submitted by user_id at its new direct upline.

        Args:
            user_id: Re-linked partner
            new_parent_id: New direct upline (or None)

        Returns:
            Number of deals updated
        """
        updated = await self.deal_repo.set_parent_referrer(user_id, new_parent_id)
        if updated:
            self.logger.info(
                f"Deal parent referrer updated for {updated} deal(s)",
                extra={"user_id": user_id, "parent_referrer_id": new_parent_id},
            )
        return updated
