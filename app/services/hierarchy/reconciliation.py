"""
Hierarchy reconciliation.

Detects drift between the live parent_partner_id chain and the
partner_hierarchy cache, and applies administrative corrections through
the hierarchy writer so the pointer and the cache change together.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.repositories.partner_hierarchy_repository import (
    PartnerHierarchyRepository,
)
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService, log_operation, transaction
from app.services.deal_sync import DealParentSync
from app.services.hierarchy.cache_builder import HierarchyCacheBuilder
from app.services.hierarchy.resolver import HierarchyResolver
from app.services.hierarchy.writer import HierarchyWriter, RelinkResult
from app.utils.exceptions import (
    CycleDetectedError,
    DanglingReferenceError,
    DriftDetected,
    TargetNotFoundError,
)


class LevelStatus(StrEnum):
    """Status of one level of a user's cached hierarchy."""

    MATCH = "match"
    MISSING = "missing"
    STALE = "stale"
    ORPHANED = "orphaned"


@dataclass(frozen=True)
class LevelFinding:
    """Comparison of the live ancestor and one cached row at a level."""

    level: int
    status: LevelStatus
    live_parent_id: str | None
    cached_parent_id: str | None


@dataclass
class DriftReport:
    """Per-level diagnosis of one user's cached hierarchy."""

    user_id: str
    user_exists: bool
    live_upline: list[str] = field(default_factory=list)
    findings: list[LevelFinding] = field(default_factory=list)
    dangling: DanglingReferenceError | None = None
    cycle: CycleDetectedError | None = None

    @property
    def problems(self) -> list[LevelFinding]:
        """Findings other than matches."""
        return [f for f in self.findings if f.status is not LevelStatus.MATCH]

    @property
    def has_drift(self) -> bool:
        """True when any cached level disagrees with the live chain."""
        return bool(self.problems)

    @property
    def is_consistent(self) -> bool:
        """True when the cache matches and the live chain is intact."""
        return not self.has_drift and self.dangling is None and self.cycle is None

    def by_status(self, status: LevelStatus) -> list[LevelFinding]:
        """Findings with the given status."""
        return [f for f in self.findings if f.status is status]

    def at_level(self, level: int) -> list[LevelFinding]:
        """Findings for one level."""
        return [f for f in self.findings if f.level == level]

    def raise_for_drift(self) -> None:
        """
        Raise DriftDetected if the cache disagrees with the live chain.

        Raises:
            DriftDetected: With this report attached
        """
        if self.has_drift:
            raise DriftDetected(self)


@dataclass
class RepairResult:
    """Outcome of an administrative correction."""

    user_id: str
    previous_parent_id: str | None
    new_parent_id: str | None
    relinks: list[RelinkResult] = field(default_factory=list)
    report: DriftReport | None = None

    @property
    def rebuilt_user_ids(self) -> list[str]:
        """Users whose cache was rebuilt, each once, in rebuild order."""
        seen: dict[str, None] = {}
        for relink in self.relinks:
            seen.update(dict.fromkeys(relink.rebuilt_user_ids))
        return list(seen)

    @property
    def deals_updated(self) -> int:
        """Deals re-pointed across every re-link."""
        return sum(relink.deals_updated for relink in self.relinks)


def classify_levels(
    live_upline: Sequence[str],
    cached: Iterable[tuple[int, str]],
    *,
    child_exists: bool = True,
    missing_ancestor_ids: frozenset[str] | set[str] = frozenset(),
) -> list[LevelFinding]:
    """
    Compare a live upline with cached (level, parent_id) rows.

    Rules per level:
    - no cached row and a live ancestor -> MISSING
    - cached row equal to the live ancestor -> MATCH (first one only)
    - child gone, or cached ancestor row gone -> ORPHANED
    - no live ancestor at the level and the cached ancestor is not
      anywhere in the live chain -> ORPHANED
    - anything else (wrong parent, ancestor at another level,
      duplicate row) -> STALE

    Args:
        live_upline: Live ancestor IDs, nearest first
        cached: Cached (level, parent_id) pairs
        child_exists: Whether the child still has a user row
        missing_ancestor_ids: Cached ancestor IDs with no user row

    Returns:
        Findings ordered by level
    """
    by_level: dict[int, list[str]] = defaultdict(list)
    for level, parent_id in sorted(cached):
        by_level[level].append(parent_id)

    if not child_exists:
        return [
            LevelFinding(level, LevelStatus.ORPHANED, None, parent_id)
            for level, parent_ids in sorted(by_level.items())
            for parent_id in parent_ids
        ]

    reachable = set(live_upline)
    top_level = max(len(live_upline), max(by_level, default=0))
    findings: list[LevelFinding] = []

    for level in range(1, top_level + 1):
        live = live_upline[level - 1] if level <= len(live_upline) else None
        rows = by_level.get(level, [])

        if not rows:
            if live is not None:
                findings.append(LevelFinding(level, LevelStatus.MISSING, live, None))
            continue

        matched = False
        for cached_id in rows:
            if cached_id == live and not matched:
                status = LevelStatus.MATCH
                matched = True
            elif cached_id in missing_ancestor_ids:
                status = LevelStatus.ORPHANED
            elif live is None and cached_id not in reachable:
                status = LevelStatus.ORPHANED
            else:
                status = LevelStatus.STALE
            findings.append(LevelFinding(level, status, live, cached_id))

    return findings


class HierarchyReconciler(BaseService):
    """Diagnoses and repairs hierarchy drift."""

    def __init__(
        self,
        session: AsyncSession,
        deal_sync: DealParentSync | None = None,
        max_depth: int | None = None,
    ) -> None:
        """
        Initialize reconciler.

        Args:
            session: Async database session
            deal_sync: Collaborator for Deal.parent_referrer_id
            max_depth: Levels compared per user (defaults to
                HIERARCHY_CACHE_DEPTH, the depth the cache is built to)
        """
        super().__init__(session)
        self.max_depth = (
            max_depth if max_depth is not None else settings.hierarchy_cache_depth
        )
        self.user_repo = UserRepository(session)
        self.hierarchy_repo = PartnerHierarchyRepository(session)
        self.resolver = HierarchyResolver(session)
        self.cache_builder = HierarchyCacheBuilder(session, max_depth=self.max_depth)
        self.writer = HierarchyWriter(
            session, deal_sync=deal_sync, cache_builder=self.cache_builder
        )

    async def diagnose(self, user_id: str) -> DriftReport:
        """
        Compare a user's live upline with its cached rows, level by level.

        Never raises on drift; call report.raise_for_drift() for that.

        Args:
            user_id: User to diagnose (may be an orphaned cache child ID)

        Returns:
            DriftReport

        Raises:
            TargetNotFoundError: If neither a user row nor cache rows exist
        """
        rows = await self.hierarchy_repo.get_for_child(user_id)
        cached = [(row.level, row.parent_id) for row in rows]
        user = await self.user_repo.get_by_id(user_id)

        if user is None:
            if not rows:
                raise TargetNotFoundError(user_id)
            report = DriftReport(
                user_id=user_id,
                user_exists=False,
                findings=classify_levels([], cached, child_exists=False),
            )
            self._log_report(report)
            return report

        upline = await self.resolver.get_upline(user_id, max_depth=self.max_depth)
        cached_ancestor_ids = {parent_id for _, parent_id in cached}
        existing = await self.user_repo.get_existing_ids(cached_ancestor_ids)

        report = DriftReport(
            user_id=user_id,
            user_exists=True,
            live_upline=upline.ids,
            findings=classify_levels(
                upline.ids,
                cached,
                missing_ancestor_ids=cached_ancestor_ids - existing,
            ),
            dangling=upline.dangling,
            cycle=upline.cycle,
        )
        self._log_report(report)
        return report

    @log_operation
    async def diagnose_all(self) -> list[DriftReport]:
        """
        Diagnose every user and every orphaned cache child.

        Returns:
            Reports that are not consistent
        """
        user_ids = await self.user_repo.get_all_ids()
        orphaned_ids = await self.hierarchy_repo.find_orphaned_child_ids()

        reports = []
        for user_id in [*user_ids, *orphaned_ids]:
            report = await self.diagnose(user_id)
            if not report.is_consistent:
                reports.append(report)

        self.logger.info(
            "Hierarchy diagnosis finished",
            extra={
                "users": len(user_ids),
                "orphaned_children": len(orphaned_ids),
                "inconsistent": len(reports),
            },
        )
        return reports

    @transaction
    async def purge_orphaned_rows(self) -> int:
        """
        Delete cache rows whose child user no longer exists.

        Returns:
            Number of rows deleted
        """
        orphaned_ids = await self.hierarchy_repo.find_orphaned_child_ids()
        deleted = await self.hierarchy_repo.delete_for_children(orphaned_ids)
        if deleted:
            self.logger.info(
                f"Purged {deleted} orphaned hierarchy row(s)",
                extra={"children": orphaned_ids},
            )
        return deleted

    @transaction
    async def repair(
        self,
        user_id: str,
        correct_parent_id: str | None,
        ancestor_id: str | None = None,
    ) -> RepairResult:
        """
        Administrative correction of a user's upline, all or nothing.

        When ancestor_id is given the intermediate link is corrected first:
        correct_parent_id is re-pointed at ancestor_id, then user_id at
        correct_parent_id. Each re-link updates the deal denormalization
        and rebuilds the affected subtree. Any failure rolls back both.

        Args:
            user_id: User whose parent is corrected
            correct_parent_id: New direct parent (None = make root)
            ancestor_id: Optional new parent of correct_parent_id

        Returns:
            RepairResult with a post-repair drift report

        Raises:
            TargetNotFoundError: If any operand does not exist
            CycleWouldFormError: If a link would make a user its own ancestor
        """
        if ancestor_id is not None and correct_parent_id is None:
            raise ValueError("ancestor_id requires correct_parent_id")

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise TargetNotFoundError(user_id)
        previous_parent_id = user.parent_partner_id

        relinks = []
        if ancestor_id is not None:
            relinks.append(await self.writer.relink(correct_parent_id, ancestor_id))
        relinks.append(await self.writer.relink(user_id, correct_parent_id))

        result = RepairResult(
            user_id=user_id,
            previous_parent_id=previous_parent_id,
            new_parent_id=correct_parent_id,
            relinks=relinks,
            report=await self.diagnose(user_id),
        )

        self.logger.info(
            f"Upline of {user_id} repaired",
            extra={
                "user_id": user_id,
                "previous_parent_id": previous_parent_id,
                "new_parent_id": correct_parent_id,
                "ancestor_id": ancestor_id,
                "rebuilt_users": len(result.rebuilt_user_ids),
                "deals_updated": result.deals_updated,
            },
        )
        return result

    def _log_report(self, report: DriftReport) -> None:
        if report.is_consistent:
            self.logger.debug(f"No drift for {report.user_id}")
            return
        self.logger.warning(
            f"Hierarchy drift for {report.user_id}",
            extra={
                "user_id": report.user_id,
                "user_exists": report.user_exists,
                "problems": [
                    (f.level, f.status.value, f.cached_parent_id)
                    for f in report.problems
                ],
                "dangling": bool(report.dangling),
                "cycle": bool(report.cycle),
            },
        )
