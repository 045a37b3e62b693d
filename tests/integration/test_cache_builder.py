"""Integration tests for HierarchyCacheBuilder."""

import pytest

from app.repositories.user_repository import UserRepository
from app.services.hierarchy import HierarchyCacheBuilder
from app.utils.exceptions import TargetNotFoundError
from tests.integration.helpers import cached_rows


class TestRebuildHierarchyFor:
    """Single-user rebuild."""

    @pytest.mark.asyncio
    async def test_writes_one_row_per_level(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B"})

        result = await HierarchyCacheBuilder(db_session).rebuild_hierarchy_for("C")

        assert result.ancestor_ids == ["B", "A"]
        assert result.rows_written == 2
        assert await cached_rows(db_session, "C") == [("B", 1), ("A", 2)]

    @pytest.mark.asyncio
    async def test_rebuild_is_idempotent(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B"})
        builder = HierarchyCacheBuilder(db_session)

        await builder.rebuild_hierarchy_for("C")
        first = await cached_rows(db_session, "C")
        await builder.rebuild_hierarchy_for("C")

        assert await cached_rows(db_session, "C") == first

    @pytest.mark.asyncio
    async def test_root_rows_are_cleared(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A"})
        builder = HierarchyCacheBuilder(db_session)
        await builder.rebuild_hierarchy_for("B")

        await UserRepository(db_session).set_parent("B", None)
        await db_session.commit()
        result = await builder.rebuild_hierarchy_for("B")

        assert result.rows_written == 0
        assert await cached_rows(db_session, "B") == []

    @pytest.mark.asyncio
    async def test_depth_bound(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B"})

        await HierarchyCacheBuilder(db_session, max_depth=1).rebuild_hierarchy_for("C")

        assert await cached_rows(db_session, "C") == [("B", 1)]

    @pytest.mark.asyncio
    async def test_dangling_chain_writes_reachable_part(self, db_session, seed_users):
        await seed_users({"B": "deleted-user", "C": "B"})

        result = await HierarchyCacheBuilder(db_session).rebuild_hierarchy_for("C")

        assert result.dangling is not None
        assert result.dangling.level == 2
        assert await cached_rows(db_session, "C") == [("B", 1)]

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, seed_users):
        await seed_users({"A": None})

        with pytest.raises(TargetNotFoundError):
            await HierarchyCacheBuilder(db_session).rebuild_hierarchy_for("nobody")


class TestRebuildAll:
    """Full rebuild."""

    @pytest.mark.asyncio
    async def test_every_user_is_rebuilt(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A", "C": "B", "X": "deleted-user"})

        summary = await HierarchyCacheBuilder(db_session).rebuild_all()

        assert summary.success
        assert summary.users_processed == 4
        assert summary.rows_written == 3
        assert summary.dangling_user_ids == ["X"]
        assert await cached_rows(db_session, "A") == []
        assert await cached_rows(db_session, "B") == [("A", 1)]
        assert await cached_rows(db_session, "C") == [("B", 1), ("A", 2)]

    @pytest.mark.asyncio
    async def test_cycles_are_reported(self, db_session, seed_users):
        await seed_users({"A": "B", "B": "A"})

        summary = await HierarchyCacheBuilder(db_session).rebuild_all()

        assert sorted(summary.cycle_user_ids) == ["A", "B"]
        assert await cached_rows(db_session, "A") == [("B", 1)]

    @pytest.mark.asyncio
    async def test_unknown_ids_are_counted_as_failed(self, db_session, seed_users):
        await seed_users({"A": None, "B": "A"})

        summary = await HierarchyCacheBuilder(db_session).rebuild_all(["B", "nobody"])

        assert summary.users_processed == 1
        assert summary.failed_user_ids == ["nobody"]
        assert not summary.success

    @pytest.mark.asyncio
    async def test_failure_on_one_user_does_not_stop_the_run(
        self, db_session, seed_users, monkeypatch
    ):
        await seed_users({"A": None, "B": "A", "C": "B"})
        builder = HierarchyCacheBuilder(db_session)
        original = builder.hierarchy_repo.replace_for_child

        async def flaky(child_id, ancestor_ids):
            if child_id == "B":
                raise RuntimeError("insert failed")
            return await original(child_id, ancestor_ids)

        monkeypatch.setattr(builder.hierarchy_repo, "replace_for_child", flaky)

        summary = await builder.rebuild_all()

        assert summary.failed_user_ids == ["B"]
        assert summary.users_processed == 2
        assert await cached_rows(db_session, "C") == [("B", 1), ("A", 2)]


class TestRebuildSubtree:
    """Rebuild of a user and its downline."""

    @pytest.mark.asyncio
    async def test_descendants_follow_a_moved_user(self, db_session, seed_users):
        await seed_users({"A": None, "X": None, "B": "A", "C": "B", "D": "C"})
        builder = HierarchyCacheBuilder(db_session)
        await builder.rebuild_all()

        await UserRepository(db_session).set_parent("C", "X")
        results = await builder.rebuild_subtree("C")
        await db_session.commit()

        assert [result.user_id for result in results] == ["C", "D"]
        assert await cached_rows(db_session, "C") == [("X", 1)]
        assert await cached_rows(db_session, "D") == [("C", 1), ("X", 2)]
        # Users outside the subtree are untouched
        assert await cached_rows(db_session, "B") == [("A", 1)]
