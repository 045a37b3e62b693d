"""
Shared fixtures for integration tests.

Services run against an in-memory SQLite database (aiosqlite). One
connection is shared through StaticPool so every session sees the same
database. Foreign keys are switched on to match PostgreSQL, so orphaned
cache rows and dangling parent links exist only where the schema allows
them.
"""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base, Deal, User


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Session on the test database."""
    session_maker = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_maker() as session:
        yield session


@pytest.fixture
def seed_users(db_session):
    """
    Insert users from a {user_id: parent_id} mapping and commit.

    IDs double as names: user "B" gets email b@example.com and referral
    code REFB.
    """
    async def factory(parents: dict[str, str | None]) -> None:
        for user_id, parent_id in parents.items():
            db_session.add(
                User(
                    id=user_id,
                    email=f"{user_id.lower()}@example.com",
                    first_name=user_id,
                    referral_code=f"REF{user_id}",
                    parent_partner_id=parent_id,
                    is_admin=False,
                )
            )
        await db_session.commit()

    return factory


@pytest.fixture
def seed_deal(db_session):
    """Insert one deal and commit."""
    async def factory(
        referrer_id: str,
        status: str = "submitted",
        parent_referrer_id: str | None = None,
    ) -> None:
        db_session.add(
            Deal(
                business_name=f"Business of {referrer_id}",
                referrer_id=referrer_id,
                status=status,
                parent_referrer_id=parent_referrer_id,
            )
        )
        await db_session.commit()

    return factory
