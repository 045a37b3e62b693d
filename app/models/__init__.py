"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.deal import Deal
from app.models.partner_hierarchy import PartnerHierarchy
from app.models.user import User


__all__ = [
    # Base
    "Base",
    # Core Models
    "User",
    "PartnerHierarchy",
    "Deal",
]
