"""
User model.

Represents a registered partner in the CRM.
"""

from uuid import uuid4

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


def generate_user_id() -> str:
    """Generate an opaque user identifier."""
    return str(uuid4())


class User(TimestampMixin, Base):
    """User model - partners, their sponsors and admins."""

    __tablename__ = "users"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_user_id
    )

    # Contact data
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    first_name: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    last_name: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )

    # Partner identity
    partner_id: Mapped[str | None] = mapped_column(
        String(20), unique=True, nullable=True
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(20), unique=True, index=True, nullable=True
    )

    # Direct upline sponsor. Not a foreign key: legacy rows may
    # point at deleted users and the resolver reports them as dangling.
    parent_partner_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, index=True
    )

    # Admin bot binding
    telegram_id: Mapped[int | None] = mapped_column(
        BigInteger, unique=True, nullable=True
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    @property
    def display_name(self) -> str:
        """Full name, falling back to email."""
        name = " ".join(
            part for part in (self.first_name, self.last_name) if part
        )
        return name or self.email

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, email={self.email}, "
            f"parent_partner_id={self.parent_partner_id})>"
        )
