"""
PartnerHierarchy model.

Denormalized closure table of the parent_partner_id chain: one row per
(descendant, ancestor, level). Derived data, rebuilt per child.
child_id and parent_id are plain columns: deleting a user leaves its rows
behind for the drift report to flag as orphaned.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class PartnerHierarchy(Base):
    """Cached ancestor of a user at a given distance."""

    __tablename__ = "partner_hierarchy"
    __table_args__ = (
        CheckConstraint('level >= 1', name='check_partner_hierarchy_level_positive'),
        UniqueConstraint('child_id', 'level', name='uq_partner_hierarchy_child_level'),
        Index('ix_partner_hierarchy_parent_level', 'parent_id', 'level'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    child_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
    )

    # 1 = direct parent, 2 = grandparent, ...
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PartnerHierarchy(child_id={self.child_id}, "
            f"parent_id={self.parent_id}, level={self.level})>"
        )
