"""
Hierarchy writer.

The single code path that writes users.parent_partner_id. Every write is
paired, in the caller's transaction, with the deal denormalization update
and a cache rebuild of the re-linked subtree.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService, transaction
from app.services.deal_sync import DealParentSync, DealReferrerSync
from app.services.hierarchy.cache_builder import HierarchyCacheBuilder
from app.services.hierarchy.resolver import HierarchyResolver
from app.utils.exceptions import (
    CycleWouldFormError,
    ReferralCodeNotFoundError,
    TargetNotFoundError,
)


@dataclass
class RelinkResult:
    """Outcome of one parent_partner_id change."""

    user_id: str
    previous_parent_id: str | None
    new_parent_id: str | None
    rebuilt_user_ids: list[str] = field(default_factory=list)
    deals_updated: int = 0

    @property
    def changed(self) -> bool:
        """True when the parent link actually moved."""
        return self.previous_parent_id != self.new_parent_id


class HierarchyWriter(BaseService):
    """Writes parent links and keeps their derived data in step."""

    def __init__(
        self,
        session: AsyncSession,
        deal_sync: DealParentSync | None = None,
        cache_builder: HierarchyCacheBuilder | None = None,
    ) -> None:
        """
        Initialize hierarchy writer.

        Args:
            session: Async database session
            deal_sync: Collaborator for Deal.parent_referrer_id
            cache_builder: Cache builder (defaults to one on the same session)
        """
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.resolver = HierarchyResolver(session)
        self.deal_sync = deal_sync or DealReferrerSync(session)
        self.cache_builder = cache_builder or HierarchyCacheBuilder(session)

    async def ensure_acyclic(self, user_id: str, parent_id: str) -> None:
        """
        Refuse a link that would make user_id its own ancestor.

        Args:
            user_id: User being re-linked
            parent_id: Proposed direct parent

        Raises:
            CycleWouldFormError: parent is the user or one of its descendants
        """
        if parent_id == user_id:
            raise CycleWouldFormError(user_id, parent_id)

        parent_upline = await self.resolver.get_upline(parent_id)
        if user_id in parent_upline.ids:
            raise CycleWouldFormError(user_id, parent_id)

        if parent_upline.cycle is not None:
            self.logger.warning(
                f"Linking {user_id} under a cyclic chain: {parent_upline.cycle}",
                extra={"user_id": user_id, "parent_id": parent_id},
            )

    async def relink(
        self, user_id: str, new_parent_id: str | None
    ) -> RelinkResult:
        """
        Change a user's direct parent inside the caller's transaction.

        Args:
            user_id: User to re-link
            new_parent_id: New direct parent, or None to make the user a root

        Returns:
            RelinkResult

        Raises:
            TargetNotFoundError: If either user does not exist
            CycleWouldFormError: If the link would close a cycle
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise TargetNotFoundError(user_id)
        previous_parent_id = user.parent_partner_id

        if new_parent_id is not None:
            if await self.user_repo.get_by_id(new_parent_id) is None:
                raise TargetNotFoundError(new_parent_id)
            await self.ensure_acyclic(user_id, new_parent_id)

        await self.user_repo.set_parent(user_id, new_parent_id)
        deals_updated = await self.deal_sync.parent_changed(user_id, new_parent_id)
        rebuilt = await self.cache_builder.rebuild_subtree(user_id)

        self.logger.info(
            f"Parent link of {user_id} set to {new_parent_id}",
            extra={
                "user_id": user_id,
                "previous_parent_id": previous_parent_id,
                "new_parent_id": new_parent_id,
                "rebuilt_users": len(rebuilt),
            },
        )
        return RelinkResult(
            user_id=user_id,
            previous_parent_id=previous_parent_id,
            new_parent_id=new_parent_id,
            rebuilt_user_ids=[result.user_id for result in rebuilt],
            deals_updated=deals_updated,
        )

    @transaction
    async def attach_referrer(
        self, user_id: str, referral_code: str
    ) -> RelinkResult:
        """
        Signup hook: link a new partner under the owner of a referral code.

        Args:
            user_id: Newly registered user
            referral_code: Code entered at signup (any case)

        Returns:
            RelinkResult

        Raises:
            ReferralCodeNotFoundError: If no user owns the code
            CycleWouldFormError: Self-referral or cyclic link
        """
        referrer = await self.resolver.find_by_referral_code(referral_code)
        if referrer is None:
            raise ReferralCodeNotFoundError(referral_code)
        return await self.relink(user_id, referrer.id)
