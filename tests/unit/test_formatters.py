"""
Tests for admin message formatting.

Covers:
- Upline and downline rendering
- Drift report, repair and rebuild summaries
- Splitting long texts for Telegram
"""

from app.services.hierarchy import (
    DownlineTree,
    DriftReport,
    LevelStatus,
    RebuildSummary,
    RepairResult,
    RelinkResult,
    Upline,
    classify_levels,
)
from app.services.team_service import TeamActivity, TeamMemberActivity
from app.utils.exceptions import DanglingReferenceError
from bot.utils.formatters import (
    format_downline,
    format_drift_report,
    format_rebuild_summary,
    format_repair_result,
    format_team_activity,
    format_upline,
    format_user,
    split_message,
)


class TestFormatUser:
    """User labels."""

    def test_name_email_and_id(self, make_user):
        user = make_user("u1", first_name="Ann", last_name="Lee", email="ann@example.com")

        assert format_user(user) == "Ann Lee <ann@example.com> [u1]"

    def test_email_only(self, make_user):
        user = make_user("u1", first_name=None, email="ann@example.com")

        assert format_user(user) == "ann@example.com [u1]"


class TestFormatUpline:
    """Upline rendering."""

    def test_levels_nearest_first(self, make_user):
        upline = Upline(
            user=make_user("C", "B"),
            ancestors=[make_user("B", "A"), make_user("A")],
        )

        text = format_upline(upline)

        assert text.index("Level 1: B") < text.index("Level 2: A")

    def test_root(self, make_user):
        text = format_upline(Upline(user=make_user("A")))

        assert "root" in text

    def test_dangling_is_shown(self, make_user):
        upline = Upline(
            user=make_user("X", "GONE"),
            dangling=DanglingReferenceError("X", "GONE", 1),
        )

        text = format_upline(upline)

        assert "GONE" in text
        assert "root" not in text


class TestFormatDownline:
    """Downline rendering."""

    def test_tree_is_indented(self, make_user):
        users = {user_id: make_user(user_id) for user_id in "ABCD"}
        tree = DownlineTree(
            root=users["A"],
            users=users,
            children={"A": ["B", "C"], "B": ["D"], "C": [], "D": []},
            levels={"A": 0, "B": 1, "C": 1, "D": 2},
        )

        lines = format_downline(tree).split("\n")

        assert "3 member(s), depth 2" in lines[0]
        assert lines[1].startswith("  └ B")
        assert lines[2].startswith("    └ D")
        assert lines[3].startswith("  └ C")


class TestFormatReports:
    """Drift, repair, rebuild and team summaries."""

    def test_drift_report_lists_every_level(self):
        report = DriftReport(
            user_id="C",
            user_exists=True,
            live_upline=["A"],
            findings=classify_levels(["A"], [(1, "B"), (2, "A")]),
        )

        text = format_drift_report(report)

        assert "Drift detected" in text
        assert "Level 1: stale" in text
        assert "Level 2: stale" in text
        assert "cached=B" in text

    def test_orphaned_child_report(self):
        report = DriftReport(
            user_id="GONE",
            user_exists=False,
            findings=classify_levels([], [(1, "A")], child_exists=False),
        )

        text = format_drift_report(report)

        assert "no longer exists" in text
        assert LevelStatus.ORPHANED.value in text

    def test_repair_result(self):
        result = RepairResult(
            user_id="C",
            previous_parent_id="B",
            new_parent_id="X",
            relinks=[
                RelinkResult("C", "B", "X", rebuilt_user_ids=["C", "D"], deals_updated=2)
            ],
        )

        text = format_repair_result(result)

        assert "B → X" in text
        assert "2 user(s)" in text
        assert "Deals updated: 2" in text

    def test_rebuild_summary_lists_failures(self):
        summary = RebuildSummary(
            users_processed=3,
            rows_written=4,
            dangling_user_ids=["X"],
            failed_user_ids=["Y"],
        )

        text = format_rebuild_summary(summary)

        assert "Rows written: 4" in text
        assert "Dangling links: X" in text
        assert "Failed: Y" in text
        assert "Cycles" not in text

    def test_team_activity(self, make_user):
        activity = TeamActivity(
            sponsor=make_user("A"),
            members=[
                TeamMemberActivity(make_user("B"), total_deals=2, approved_deals=1),
                TeamMemberActivity(make_user("C"), total_deals=1, approved_deals=0),
            ],
            level_counts={1: 2, 2: 1},
        )

        text = format_team_activity(activity)

        assert "Active partners: 1 / 2" in text
        assert "1/2 approved deal(s), ACTIVE" in text
        assert "L1: 2, L2: 1" in text


class TestSplitMessage:
    """Telegram message splitting."""

    def test_short_text_is_one_chunk(self):
        assert split_message("hello\nworld", limit=100) == ["hello\nworld"]

    def test_splits_on_line_boundaries(self):
        text = "\n".join(f"line {i:02d}" for i in range(10))

        chunks = split_message(text, limit=20)

        assert all(len(chunk) <= 20 for chunk in chunks)
        assert "\n".join(chunks) == text

    def test_overlong_line_is_cut(self):
        chunks = split_message("x" * 25, limit=10)

        assert chunks == ["x" * 10, "x" * 10, "x" * 5]
