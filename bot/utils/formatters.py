"""
Formatters
Plain-text rendering of hierarchy results for admin messages
"""

from app.config.constants import TELEGRAM_MESSAGE_LIMIT
from app.models.user import User
from app.services.hierarchy import (
    DownlineTree,
    DriftReport,
    LevelStatus,
    RebuildSummary,
    RepairResult,
    Upline,
)
from app.services.team_service import TeamActivity


STATUS_ICONS = {
    LevelStatus.MATCH: "✅",
    LevelStatus.MISSING: "➕",
    LevelStatus.STALE: "⚠️",
    LevelStatus.ORPHANED: "🗑",
}


def format_user(user: User) -> str:
    """
    One-line user label

    Args:
        user: User to describe

    Returns:
        "Name <email> [id]"
    """
    if user.display_name == user.email:
        return f"{user.email} [{user.id}]"
    return f"{user.display_name} <{user.email}> [{user.id}]"


def format_upline(upline: Upline) -> str:
    """Render an upline, nearest sponsor first."""
    lines = [f"⬆️ Upline of {format_user(upline.user)} ({upline.source})"]
    if not upline.ancestors and upline.is_complete:
        lines.append("No upline: this partner is a root.")
    for level, ancestor in upline.levels():
        lines.append(f"  Level {level}: {format_user(ancestor)}")
    if upline.dangling:
        lines.append(f"❌ {upline.dangling}")
    if upline.cycle:
        lines.append(f"🔁 {upline.cycle}")
    return "\n".join(lines)


def format_downline(tree: DownlineTree) -> str:
    """Render a downline tree with indentation per level."""
    lines = [
        f"⬇️ Downline of {format_user(tree.root)}: "
        f"{tree.size} member(s), depth {tree.depth}"
    ]

    def walk(user_id: str, indent: int) -> None:
        for child in tree.children_of(user_id):
            lines.append(f"{'  ' * indent}└ {format_user(child)}")
            walk(child.id, indent + 1)

    walk(tree.root.id, 1)
    for cycle in tree.cycles:
        lines.append(f"🔁 {cycle}")
    return "\n".join(lines)


def format_drift_report(report: DriftReport) -> str:
    """Render a per-level drift report."""
    header = "✅ Consistent" if report.is_consistent else "⚠️ Drift detected"
    lines = [f"🔍 Hierarchy of {report.user_id}: {header}"]
    if not report.user_exists:
        lines.append("User row no longer exists; every cached row is orphaned.")
    elif report.live_upline:
        lines.append("Live upline: " + " → ".join(report.live_upline))
    else:
        lines.append("Live upline: none (root)")

    for finding in report.findings:
        icon = STATUS_ICONS[finding.status]
        lines.append(
            f"  {icon} Level {finding.level}: {finding.status.value} "
            f"(live={finding.live_parent_id or '-'}, "
            f"cached={finding.cached_parent_id or '-'})"
        )
    if report.dangling:
        lines.append(f"❌ {report.dangling}")
    if report.cycle:
        lines.append(f"🔁 {report.cycle}")
    return "\n".join(lines)


def format_repair_result(result: RepairResult) -> str:
    """Render the outcome of a repair."""
    lines = [
        f"🔧 Upline of {result.user_id} repaired",
        f"  Parent: {result.previous_parent_id or '-'} → {result.new_parent_id or '-'}",
        f"  Cache rebuilt for {len(result.rebuilt_user_ids)} user(s)",
        f"  Deals updated: {result.deals_updated}",
    ]
    if result.report is not None:
        lines.append(format_drift_report(result.report))
    return "\n".join(lines)


def format_rebuild_summary(summary: RebuildSummary) -> str:
    """Render the outcome of a full rebuild."""
    lines = [
        "♻️ Hierarchy rebuild finished",
        f"  Users: {summary.users_processed}",
        f"  Rows written: {summary.rows_written}",
    ]
    if summary.dangling_user_ids:
        lines.append(f"  Dangling links: {', '.join(summary.dangling_user_ids)}")
    if summary.cycle_user_ids:
        lines.append(f"  Cycles: {', '.join(summary.cycle_user_ids)}")
    if summary.failed_user_ids:
        lines.append(f"  Failed: {', '.join(summary.failed_user_ids)}")
    return "\n".join(lines)


def format_team_activity(activity: TeamActivity) -> str:
    """Render a partner's direct team with deal activity."""
    lines = [
        f"👥 Team of {format_user(activity.sponsor)}",
        f"Active partners: {activity.active_count} / {len(activity.members)}",
    ]
    for member in activity.members:
        status = "ACTIVE" if member.is_active else "not active"
        lines.append(
            f"  {format_user(member.user)}: {member.approved_deals}/"
            f"{member.total_deals} approved deal(s), {status}"
        )
    if activity.level_counts:
        per_level = ", ".join(
            f"L{level}: {count}" for level, count in sorted(activity.level_counts.items())
        )
        lines.append(f"Downline by level: {per_level}")
    return "\n".join(lines)


def split_message(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> list[str]:
    """
    Split long text on line boundaries to fit Telegram's message limit

    Args:
        text: Text to send
        limit: Maximum characters per message

    Returns:
        Non-empty chunks, each at most limit characters
    """
    chunks: list[str] = []
    current: str | None = None
    for line in text.split("\n"):
        while len(line) > limit:
            if current is not None:
                chunks.append(current)
                current = None
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = line if current is None else f"{current}\n{line}"
        if len(candidate) > limit:
            if current:
                chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks
