"""Direct table reads used by integration assertions."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Deal, PartnerHierarchy, User


async def parent_of(session: AsyncSession, user_id: str) -> str | None:
    """parent_partner_id straight from the table."""
    result = await session.execute(
        select(User.parent_partner_id).where(User.id == user_id)
    )
    return result.scalar_one()


async def cached_rows(session: AsyncSession, child_id: str) -> list[tuple[str, int]]:
    """(parent_id, level) cache rows of a child, by level."""
    result = await session.execute(
        select(PartnerHierarchy.parent_id, PartnerHierarchy.level)
        .where(PartnerHierarchy.child_id == child_id)
        .order_by(PartnerHierarchy.level)
    )
    return [(row.parent_id, row.level) for row in result.all()]


async def deal_parents(session: AsyncSession, referrer_id: str) -> list[str | None]:
    """parent_referrer_id of every deal submitted by a partner."""
    result = await session.execute(
        select(Deal.parent_referrer_id).where(Deal.referrer_id == referrer_id)
    )
    return [row[0] for row in result.all()]
