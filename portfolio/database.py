from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator
import logging
import os

from portfolio import config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass

engine = None
async_session_maker = None

async def init_db(database_url: str = None) -> None:
    """Open the database and bring its schema and seed data up to date.

    Safe to call on every start. Any failure here propagates so the process
    never serves requests against a half-initialized schema.
    """
    global engine, async_session_maker

    if database_url is None:
        database_url = config.get_database_url()

    # Convert sync sqlite URL to async
    if database_url.startswith("sqlite:///"):
        database_url = database_url.replace("sqlite:///", "sqlite+aiosqlite:///")

    # Ensure database directory exists
    if database_url.startswith("sqlite+aiosqlite:///") and not database_url.endswith(":memory:"):
        db_path = database_url.replace("sqlite+aiosqlite:///", "")
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

    if engine is not None:
        await engine.dispose()

    engine = create_async_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    # Import models to register them with Base.metadata
    from portfolio import models  # noqa: F401
    from portfolio import migrations

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(migrations.ensure_columns)
        await conn.run_sync(migrations.seed_categories)
        applied = await conn.run_sync(migrations.apply_pending)
        await conn.run_sync(migrations.seed_entries)

    if applied:
        logger.info(f"Applied migrations: {', '.join(applied)}")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session
