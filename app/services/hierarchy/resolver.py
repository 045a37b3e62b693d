"""
Hierarchy resolver.

Answers "who is above / below this partner" from the live
parent_partner_id chain, or from the partner_hierarchy cache when the
caller wants the precomputed shortcut.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.partner_hierarchy_repository import (
    PartnerHierarchyRepository,
)
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService
from app.services.hierarchy.traversal import (
    UserLink,
    group_children,
    walk_downline,
    walk_upline,
)
from app.utils.exceptions import (
    CycleDetectedError,
    DanglingReferenceError,
    TargetNotFoundError,
)


@dataclass
class Upline:
    """Ancestors of a user, nearest first."""

    user: User
    ancestors: list[User] = field(default_factory=list)
    dangling: DanglingReferenceError | None = None
    cycle: CycleDetectedError | None = None
    source: Literal["live", "cache"] = "live"

    @property
    def ids(self) -> list[str]:
        """Ancestor IDs, nearest first."""
        return [ancestor.id for ancestor in self.ancestors]

    @property
    def is_complete(self) -> bool:
        """True when no dangling link or cycle cut the walk short."""
        return self.dangling is None and self.cycle is None

    def __len__(self) -> int:
        return len(self.ancestors)

    def levels(self) -> Iterator[tuple[int, User]]:
        """Yield (level, ancestor) pairs, level 1 first."""
        return enumerate(self.ancestors, start=1)


@dataclass
class DownlineTree:
    """Descendants of a user keyed by user ID."""

    root: User
    users: dict[str, User] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)
    levels: dict[str, int] = field(default_factory=dict)
    cycles: list[CycleDetectedError] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Number of descendants (root excluded)."""
        return len(self.levels) - 1

    @property
    def depth(self) -> int:
        """Deepest level reached."""
        return max(self.levels.values(), default=0)

    def direct(self) -> list[User]:
        """Direct recruits of the root."""
        return self.children_of(self.root.id)

    def children_of(self, user_id: str) -> list[User]:
        """Direct recruits of any node in the tree."""
        return [self.users[child_id] for child_id in self.children.get(user_id, [])]

    def members(self) -> Iterator[tuple[int, User]]:
        """Yield (level, user) for every descendant, breadth first."""
        for user_id, level in self.levels.items():
            if user_id != self.root.id:
                yield level, self.users[user_id]

    def count_by_level(self) -> dict[int, int]:
        """Number of descendants per level."""
        counts: dict[int, int] = {}
        for level, _ in self.members():
            counts[level] = counts.get(level, 0) + 1
        return counts


class HierarchyResolver(BaseService):
    """Resolves uplines and downlines of partners."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize hierarchy resolver."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.hierarchy_repo = PartnerHierarchyRepository(session)

    async def get_user(self, user_id: str) -> User:
        """
        Load a user or fail.

        Raises:
            TargetNotFoundError: If no user row exists
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise TargetNotFoundError(user_id)
        return user

    async def get_upline(
        self,
        user_id: str,
        max_depth: int | None = None,
        strict: bool = False,
    ) -> Upline:
        """
        Walk parent_partner_id links from a user towards the root.

        One query per step (SELECT ... FROM users WHERE id = ?). A missing
        parent row or a revisited ID ends the walk and is reported on the
        result; pass strict=True to raise it instead.

        Args:
            user_id: Starting user ID
            max_depth: Maximum number of ancestors (None = full chain)
            strict: Raise dangling/cycle findings instead of attaching them

        Returns:
            Upline with ancestors nearest first

        Raises:
            TargetNotFoundError: If the starting user does not exist
            DanglingReferenceError: strict mode, parent row missing
            CycleDetectedError: strict mode, chain revisits a user
        """
        user = await self.get_user(user_id)
        loaded: dict[str, User] = {user.id: user}

        async def fetch(link_id: str) -> UserLink | None:
            row = await self.user_repo.get_by_id(link_id)
            if row is None:
                return None
            loaded[row.id] = row
            return UserLink(row.id, row.parent_partner_id)

        walk = await walk_upline(
            UserLink(user.id, user.parent_partner_id),
            fetch,
            max_depth=max_depth,
        )

        upline = Upline(
            user=user,
            ancestors=[loaded[ancestor_id] for ancestor_id in walk.ancestor_ids],
            dangling=walk.dangling,
            cycle=walk.cycle,
        )

        if not upline.is_complete:
            finding = upline.dangling or upline.cycle
            self.logger.warning(
                f"Upline of {user_id} cut short: {finding}",
                extra={
                    "user_id": user_id,
                    "finding": finding.reason,
                    "ancestors": len(upline),
                },
            )
            if strict:
                raise finding

        return upline

    async def get_downline(
        self, user_id: str, max_depth: int | None = None
    ) -> DownlineTree:
        """
        Collect the downline tree of a user.

        One batched reverse lookup per level
        (SELECT ... FROM users WHERE parent_partner_id IN (...)).

        Args:
            user_id: Root user ID
            max_depth: Maximum number of levels (None = whole subtree)

        Returns:
            DownlineTree keyed by user ID

        Raises:
            TargetNotFoundError: If the root user does not exist
        """
        root = await self.get_user(user_id)
        tree = DownlineTree(root=root, users={root.id: root})

        async def fetch_children(parent_ids: list[str]) -> dict[str, list[str]]:
            rows = await self.user_repo.get_children_of(parent_ids)
            for row in rows:
                tree.users.setdefault(row.id, row)
            return group_children(
                UserLink(row.id, row.parent_partner_id) for row in rows
            )

        walk = await walk_downline(root.id, fetch_children, max_depth=max_depth)

        tree.children = walk.children
        tree.levels = walk.levels
        tree.cycles = walk.cycles

        for cycle in tree.cycles:
            self.logger.warning(
                f"Downline of {user_id} revisits a user: {cycle}",
                extra={"user_id": user_id, "revisited_id": cycle.revisited_id},
            )

        return tree

    async def get_cached_upline(
        self, user_id: str, max_depth: int | None = None
    ) -> Upline:
        """
        Answer the upline from partner_hierarchy rows.

        Falls back to the live chain when the user has no cached rows
        or when the rows skip a level.
        A cached ancestor without a user row is reported as dangling and
        ends the list.

        Args:
            user_id: Descendant user ID
            max_depth: Maximum level to read

        Returns:
            Upline with source "cache" (or "live" on fallback)
        """
        user = await self.get_user(user_id)
        rows = await self.hierarchy_repo.get_for_child(user_id, max_level=max_depth)
        if not rows:
            self.logger.debug(
                f"No cached hierarchy for {user_id}, using live chain"
            )
            return await self.get_upline(user_id, max_depth=max_depth)

        upline = Upline(user=user, source="cache")
        for row in rows:
            if row.level != len(upline.ancestors) + 1:
                self.logger.warning(
                    f"Cached hierarchy of {user_id} skips to level {row.level}, "
                    f"using live chain",
                    extra={"user_id": user_id, "level": row.level},
                )
                return await self.get_upline(user_id, max_depth=max_depth)
            ancestor = await self.user_repo.get_by_id(row.parent_id)
            if ancestor is None:
                upline.dangling = DanglingReferenceError(
                    user_id, row.parent_id, row.level
                )
                break
            upline.ancestors.append(ancestor)
        return upline

    async def find_by_referral_code(self, referral_code: str) -> User | None:
        """Look a referrer up by code (case-insensitive)."""
        return await self.user_repo.get_by_referral_code(referral_code)
