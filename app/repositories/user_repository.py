"""
User repository.

Data access layer for User model, including the parent_partner_id
adjacency queries the hierarchy services are built on.
"""

from collections.abc import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.base import BaseRepository
from app.utils.datetime_utils import utc_now


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        value.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_telegram_id(
        self, telegram_id: int
    ) -> User | None:
        """
        Get user bound to a Telegram account.

        Args:
            telegram_id: Telegram user ID

        Returns:
            User or None
        """
        return await self.get_by(telegram_id=telegram_id)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get user by email (case-insensitive).

        Args:
            email: Email address, any case

        Returns:
            User or None
        """
        stmt = select(User).where(
            User.email.ilike(escape_like(email.strip()), escape="\\")
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_referral_code(
        self, referral_code: str
    ) -> User | None:
        """
        Get user by referral code (case-insensitive).

        Codes are typed by hand on signup, so "uu001" must find "UU001".

        Args:
            referral_code: Referral code

        Returns:
            User or None
        """
        stmt = select(User).where(
            User.referral_code.ilike(
                escape_like(referral_code.strip()), escape="\\"
            )
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_referral_codes_like(
        self, prefix: str, limit: int = 20
    ) -> list[User]:
        """Users whose referral code starts with the given prefix."""
        stmt = (
            select(User)
            .where(
                User.referral_code.ilike(f"{escape_like(prefix)}%", escape="\\")
            )
            .order_by(User.referral_code)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def resolve(self, identifier: str) -> User | None:
        """
        Find a user by id, email, partner id or referral code.

        Used by admin commands and scripts where the operator types
        whatever identifier is at hand.
        """
        identifier = identifier.strip()
        user = await self.get_by_id(identifier)
        if user:
            return user
        if "@" in identifier:
            return await self.get_by_email(identifier)
        user = await self.get_by(partner_id=identifier)
        if user:
            return user
        return await self.get_by_referral_code(identifier)

    async def get_children(self, parent_id: str) -> list[User]:
        """
        Direct downline of a user (WHERE parent_partner_id = ?).

        Args:
            parent_id: Sponsor user ID

        Returns:
            Users sponsored directly, newest first
        """
        stmt = (
            select(User)
            .where(User.parent_partner_id == parent_id)
            .order_by(User.created_at.desc(), User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_children_of(
        self, parent_ids: Iterable[str]
    ) -> list[User]:
        """
        Direct downline of several users in one query.

        Args:
            parent_ids: Sponsor user IDs

        Returns:
            Users whose parent is any of the given IDs
        """
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []
        stmt = (
            select(User)
            .where(User.parent_partner_id.in_(parent_ids))
            .order_by(User.created_at, User.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_parent_links(self) -> dict[str, str | None]:
        """
        Whole adjacency relation: user id -> parent_partner_id.

        Returns:
            Mapping for every user row
        """
        stmt = select(User.id, User.parent_partner_id)
        result = await self.session.execute(stmt)
        return {row.id: row.parent_partner_id for row in result.all()}

    async def get_all_ids(self) -> list[str]:
        """IDs of every user, oldest first."""
        stmt = select(User.id).order_by(User.created_at, User.id)
        result = await self.session.execute(stmt)
        return [row[0] for row in result.all()]

    async def get_existing_ids(self, ids: Iterable[str]) -> set[str]:
        """
        Subset of the given IDs that have a user row.

        Args:
            ids: Candidate user IDs

        Returns:
            IDs that exist
        """
        ids = set(ids)
        if not ids:
            return set()
        stmt = select(User.id).where(User.id.in_(ids))
        result = await self.session.execute(stmt)
        return {row[0] for row in result.all()}

    async def set_parent(
        self, user_id: str, parent_id: str | None
    ) -> bool:
        """
        Point a user at a new direct sponsor.

        Only HierarchyWriter should call this; it pairs the update with
        the cache rebuild in the same transaction.

        Args:
            user_id: User to re-link
            parent_id: New sponsor ID, or None to make the user a root

        Returns:
            True if a row was updated
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(parent_partner_id=parent_id, updated_at=utc_now())
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
