"""
Hierarchy traversal.

Walks the parent_partner_id adjacency relation upward and downward. Both
walks take an explicit visited set, so a corrupted (cyclic) chain ends the
walk with a finding instead of looping.

The walks only deal in IDs. Row access is injected as fetcher coroutines,
so the same code runs against live per-row queries or an in-memory parent
map loaded once for a bulk rebuild.
"""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field

from app.utils.exceptions import CycleDetectedError, DanglingReferenceError


@dataclass(frozen=True)
class UserLink:
    """One edge of the adjacency relation."""

    user_id: str
    parent_id: str | None


# Returns the link for an ID, or None when no user row exists
LinkFetcher = Callable[[str], Awaitable[UserLink | None]]

# Returns the direct children of every given ID
ChildrenFetcher = Callable[[list[str]], Awaitable[dict[str, list[str]]]]


@dataclass
class UplineWalk:
    """Result of an upward walk."""

    start_id: str
    ancestor_ids: list[str] = field(default_factory=list)
    dangling: DanglingReferenceError | None = None
    cycle: CycleDetectedError | None = None

    @property
    def is_complete(self) -> bool:
        """True when the walk ended at a root or the depth bound."""
        return self.dangling is None and self.cycle is None


@dataclass
class DownlineWalk:
    """Result of a downward walk."""

    root_id: str
    children: dict[str, list[str]] = field(default_factory=dict)
    levels: dict[str, int] = field(default_factory=dict)
    cycles: list[CycleDetectedError] = field(default_factory=list)

    @property
    def member_ids(self) -> list[str]:
        """Descendant IDs in breadth-first order (root excluded)."""
        return [user_id for user_id in self.levels if user_id != self.root_id]


async def walk_upline(
    start: UserLink,
    fetch: LinkFetcher,
    *,
    max_depth: int | None = None,
    visited: set[str] | None = None,
) -> UplineWalk:
    """
    Follow parent links from a user towards the root.

    Stops at a root, after max_depth ancestors, at a missing parent row
    (dangling finding) or at a revisited ID (cycle finding).

    Args:
        start: Link of the starting user
        fetch: Coroutine resolving an ID to its link
        max_depth: Maximum number of ancestors to collect
        visited: IDs already seen; seeded with the start ID

    Returns:
        UplineWalk with ancestors nearest first
    """
    if visited is None:
        visited = set()
    visited.add(start.user_id)

    walk = UplineWalk(start_id=start.user_id)
    current = start

    while current.parent_id is not None:
        if max_depth is not None and len(walk.ancestor_ids) >= max_depth:
            break

        level = len(walk.ancestor_ids) + 1
        if current.parent_id in visited:
            walk.cycle = CycleDetectedError(
                start.user_id, current.parent_id, level
            )
            break

        parent = await fetch(current.parent_id)
        if parent is None:
            walk.dangling = DanglingReferenceError(
                current.user_id, current.parent_id, level
            )
            break

        visited.add(parent.user_id)
        walk.ancestor_ids.append(parent.user_id)
        current = parent

    return walk


async def walk_downline(
    root_id: str,
    fetch_children: ChildrenFetcher,
    *,
    max_depth: int | None = None,
    visited: set[str] | None = None,
) -> DownlineWalk:
    """
    Breadth-first walk over reverse parent links.

    One fetch per level. A child that was already visited is recorded as a
    cycle and not expanded again.

    Args:
        root_id: User whose downline is walked
        fetch_children: Coroutine returning children for a batch of IDs
        max_depth: Maximum number of levels below the root
        visited: IDs already seen; seeded with the root ID

    Returns:
        DownlineWalk keyed by user ID
    """
    if visited is None:
        visited = set()
    visited.add(root_id)

    walk = DownlineWalk(root_id=root_id)
    walk.levels[root_id] = 0
    frontier = [root_id]
    depth = 0

    while frontier:
        if max_depth is not None and depth >= max_depth:
            break
        depth += 1

        children_by_parent = await fetch_children(frontier)
        next_frontier: list[str] = []
        for parent_id in frontier:
            kept: list[str] = []
            for child_id in children_by_parent.get(parent_id, []):
                if child_id in visited:
                    walk.cycles.append(
                        CycleDetectedError(parent_id, child_id, depth)
                    )
                    continue
                visited.add(child_id)
                walk.levels[child_id] = depth
                kept.append(child_id)
                next_frontier.append(child_id)
            walk.children[parent_id] = kept
        frontier = next_frontier

    return walk


def mapping_link_fetcher(parents: Mapping[str, str | None]) -> LinkFetcher:
    """
    Link fetcher backed by an in-memory parent map.

    Args:
        parents: user ID -> parent_partner_id for every existing user

    Returns:
        LinkFetcher that never touches the database
    """
    async def fetch(user_id: str) -> UserLink | None:
        if user_id not in parents:
            return None
        return UserLink(user_id, parents[user_id])

    return fetch


def mapping_children_fetcher(
    parents: Mapping[str, str | None],
) -> ChildrenFetcher:
    """
    Children fetcher backed by an in-memory parent map.

    Args:
        parents: user ID -> parent_partner_id for every existing user

    Returns:
        ChildrenFetcher that never touches the database
    """
    children = group_children(
        UserLink(user_id, parent_id) for user_id, parent_id in parents.items()
    )

    async def fetch(parent_ids: list[str]) -> dict[str, list[str]]:
        return {parent_id: children.get(parent_id, []) for parent_id in parent_ids}

    return fetch


def group_children(links: Iterable[UserLink]) -> dict[str, list[str]]:
    """Group child IDs under their parent ID."""
    grouped: dict[str, list[str]] = {}
    for link in links:
        if link.parent_id is not None:
            grouped.setdefault(link.parent_id, []).append(link.user_id)
    return grouped
