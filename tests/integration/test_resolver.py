"""Integration tests for HierarchyResolver."""

import pytest
from sqlalchemy import delete

from app.models import PartnerHierarchy, User
from app.services.hierarchy import HierarchyCacheBuilder, HierarchyResolver
from app.utils.exceptions import (
    CycleDetectedError,
    DanglingReferenceError,
    TargetNotFoundError,
)


class TestGetUpline:
    """Live upline resolution."""

    @pytest.mark.asyncio
    async def test_chain_nearest_first(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B"})

        upline = await HierarchyResolver(db_session).get_upline("C")

        assert upline.ids == ["B", "A"]
        assert upline.source == "live"
        assert upline.is_complete
        assert [(level, user.id) for level, user in upline.levels()] == [
            (1, "B"),
            (2, "A"),
        ]

    @pytest.mark.asyncio
    async def test_max_depth(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B", "D": "C"})

        upline = await HierarchyResolver(db_session).get_upline("D", max_depth=2)

        assert upline.ids == ["C", "B"]

    @pytest.mark.asyncio
    async def test_dangling_parent_is_attached(self, db_session, seed_users):
        await seed_users({"X": "deleted-user"})

        upline = await HierarchyResolver(db_session).get_upline("X")

        assert len(upline) == 0
        assert isinstance(upline.dangling, DanglingReferenceError)
        assert upline.dangling.level == 1
        assert upline.dangling.missing_parent_id == "deleted-user"

    @pytest.mark.asyncio
    async def test_strict_mode_raises(self, db_session, seed_users):
        await seed_users({"X": "deleted-user"})

        with pytest.raises(DanglingReferenceError):
            await HierarchyResolver(db_session).get_upline("X", strict=True)

    @pytest.mark.asyncio
    async def test_cycle_is_attached(self, db_session, seed_users):
        await seed_users({"A": "B", "B": "A"})

        upline = await HierarchyResolver(db_session).get_upline("A")

        assert upline.ids == ["B"]
        assert isinstance(upline.cycle, CycleDetectedError)
        assert upline.cycle.revisited_id == "A"

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, seed_users):
        await seed_users({"A": None})

        with pytest.raises(TargetNotFoundError) as exc_info:
            await HierarchyResolver(db_session).get_upline("nobody")
        assert exc_info.value.user_id == "nobody"


class TestGetDownline:
    """Downline tree resolution."""

    @pytest.mark.asyncio
    async def test_tree(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "A", "D": "B"})

        tree = await HierarchyResolver(db_session).get_downline("A")

        assert tree.size == 3
        assert tree.depth == 2
        assert sorted(user.id for user in tree.direct()) == ["B", "C"]
        assert [user.id for user in tree.children_of("B")] == ["D"]
        assert tree.count_by_level() == {1: 2, 2: 1}

    @pytest.mark.asyncio
    async def test_max_depth(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "D": "B"})

        tree = await HierarchyResolver(db_session).get_downline("A", max_depth=1)

        assert [user.id for _, user in tree.members()] == ["B"]

    @pytest.mark.asyncio
    async def test_cycle_does_not_loop(self, db_session, seed_users):
        await seed_users({"A": "B", "B": "A"})

        tree = await HierarchyResolver(db_session).get_downline("A")

        assert tree.size == 1
        assert len(tree.cycles) == 1


class TestCachedUpline:
    """Upline answered from partner_hierarchy rows."""

    @pytest.mark.asyncio
    async def test_reads_cache_rows(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B"})
        await HierarchyCacheBuilder(db_session).rebuild_hierarchy_for("C")

        upline = await HierarchyResolver(db_session).get_cached_upline("C")

        assert upline.source == "cache"
        assert upline.ids == ["B", "A"]

    @pytest.mark.asyncio
    async def test_falls_back_to_live_chain(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A"})

        upline = await HierarchyResolver(db_session).get_cached_upline("B")

        assert upline.source == "live"
        assert upline.ids == ["A"]

    @pytest.mark.asyncio
    async def test_level_gap_falls_back_to_live_chain(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B", "D": "C"})
        await HierarchyCacheBuilder(db_session).rebuild_hierarchy_for("D")
        await db_session.execute(
            delete(PartnerHierarchy).where(
                PartnerHierarchy.child_id == "D", PartnerHierarchy.level == 2
            )
        )
        await db_session.commit()

        upline = await HierarchyResolver(db_session).get_cached_upline("D")

        assert upline.source == "live"
        assert dict((level, user.id) for level, user in upline.levels()) == {
            1: "C",
            2: "B",
            3: "A",
        }

    @pytest.mark.asyncio
    async def test_deleted_ancestor_is_dangling(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B", "D": "C"})
        await HierarchyCacheBuilder(db_session).rebuild_hierarchy_for("D")
        await db_session.execute(delete(User).where(User.id == "B"))
        await db_session.commit()

        upline = await HierarchyResolver(db_session).get_cached_upline("D")

        assert upline.source == "cache"
        assert upline.ids == ["C"]
        assert upline.dangling is not None
        assert upline.dangling.level == 2


class TestFindByReferralCode:
    """Referral code lookup."""

    @pytest.mark.asyncio
    async def test_case_insensitive(self, db_session, seed_users):
        await seed_users({"A": None})

        user = await HierarchyResolver(db_session).find_by_referral_code("refa")

        assert user is not None
        assert user.id == "A"

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session, seed_users):
        await seed_users({"A": None})

        assert await HierarchyResolver(db_session).find_by_referral_code("nope") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["RE_A", "REF_", "%", "R%"])
    async def test_wildcards_match_literally(self, db_session, seed_users, code):
        await seed_users({"A": None})

        assert await HierarchyResolver(db_session).find_by_referral_code(code) is None

    @pytest.mark.asyncio
    async def test_code_with_underscore(self, db_session, seed_users):
        await seed_users({"A_1": None, "AX1": None})

        user = await HierarchyResolver(db_session).find_by_referral_code("refa_1")

        assert user is not None
        assert user.id == "A_1"
