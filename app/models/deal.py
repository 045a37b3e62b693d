"""
Deal model.

A referred business opportunity submitted by a partner.
"""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.config.constants import DEFAULT_DEAL_STAGE, DEFAULT_DEAL_STATUS
from app.models.base import Base, TimestampMixin


class Deal(TimestampMixin, Base):
    """Deal model - opportunities and their commission beneficiaries."""

    __tablename__ = "deals"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    business_name: Mapped[str] = mapped_column(
        String(255), nullable=False
    )
    deal_stage: Mapped[str] = mapped_column(
        String(50), default=DEFAULT_DEAL_STAGE, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(30), default=DEFAULT_DEAL_STATUS, nullable=False, index=True
    )

    # Partner who submitted the deal
    referrer_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Referrer's direct upline at the time of the last hierarchy change
    parent_referrer_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Deal(id={self.id}, business_name={self.business_name}, "
            f"referrer_id={self.referrer_id})>"
        )
