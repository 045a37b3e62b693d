"""Bot utilities"""

# Formatters
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

__all__ = [
    # Formatters
    "format_user",
    "format_upline",
    "format_downline",
    "format_drift_report",
    "format_repair_result",
    "format_rebuild_summary",
    "format_team_activity",
    "split_message",
]
