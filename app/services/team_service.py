"""
Team activity service.

Lists a partner's direct team with their deal counts. A team member is an
active partner once at least one of their deals is approved, live or
completed.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.deal_repository import DealRepository
from app.repositories.partner_hierarchy_repository import (
    PartnerHierarchyRepository,
)
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService
from app.utils.exceptions import TargetNotFoundError


@dataclass(frozen=True)
class TeamMemberActivity:
    """Deal activity of one direct team member."""

    user: User
    total_deals: int
    approved_deals: int

    @property
    def is_active(self) -> bool:
        return self.approved_deals > 0


@dataclass
class TeamActivity:
    """Deal activity of a partner's direct team."""

    sponsor: User
    members: list[TeamMemberActivity]
    level_counts: dict[int, int]

    @property
    def active_count(self) -> int:
        return sum(1 for member in self.members if member.is_active)


class TeamActivityService(BaseService):
    """Reports on a partner's team."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize team activity service."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.deal_repo = DealRepository(session)
        self.hierarchy_repo = PartnerHierarchyRepository(session)

    async def get_team_activity(self, user_id: str) -> TeamActivity:
        """
        Direct team members of a partner with their deal counts.

        The member list comes from the live parent links (the same query as
        the partner dashboard); level_counts come from the cache.

        Args:
            user_id: Sponsor user ID

        Returns:
            TeamActivity

        Raises:
            TargetNotFoundError: If the sponsor does not exist
        """
        sponsor = await self.user_repo.get_by_id(user_id)
        if sponsor is None:
            raise TargetNotFoundError(user_id)

        children = await self.user_repo.get_children(user_id)
        counts = await self.deal_repo.get_deal_counts(child.id for child in children)

        members = [
            TeamMemberActivity(
                user=child,
                total_deals=counts.get(child.id, (0, 0))[0],
                approved_deals=counts.get(child.id, (0, 0))[1],
            )
            for child in children
        ]
        return TeamActivity(
            sponsor=sponsor,
            members=members,
            level_counts=await self.hierarchy_repo.get_level_counts(user_id),
        )
