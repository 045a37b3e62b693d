"""
Application constants.

Centralized constants for the partner hierarchy.
"""

# ========================================================================
# HIERARCHY CONSTANTS
# ========================================================================

# Upline levels shown by default in admin views (matches the partner
# dashboard, which shows sponsor, grand-sponsor and one more level)
DEFAULT_UPLINE_DISPLAY_DEPTH = 3

# Downline levels shown by the admin bot before the tree is truncated
DEFAULT_DOWNLINE_DISPLAY_DEPTH = 3

# Rows per INSERT statement when rewriting partner_hierarchy
HIERARCHY_INSERT_BATCH_SIZE = 500

# ========================================================================
# DEAL CONSTANTS
# ========================================================================

# Deal statuses that count a team member as an active partner
APPROVED_DEAL_STATUSES = ("approved", "live", "completed")

DEFAULT_DEAL_STAGE = "lead"
DEFAULT_DEAL_STATUS = "submitted"

# ========================================================================
# TELEGRAM BOT CONSTANTS
# ========================================================================

# Telegram caps a message at 4096 characters; keep a safety buffer
TELEGRAM_MESSAGE_LIMIT = 4000
