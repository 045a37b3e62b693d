"""
Services.

Business logic layer.
"""

from app.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from app.services.deal_sync import DealParentSync, DealReferrerSync
from app.services.team_service import TeamActivityService


__all__ = [
    # Base Service Infrastructure
    "BaseService",
    "log_operation",
    "transaction",
    # Collaborators
    "DealParentSync",
    "DealReferrerSync",
    # Reporting
    "TeamActivityService",
]
