"""Database connection and session management"""

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.config import settings
import logging

logger = logging.getLogger(__name__)


def normalize_database_url(db_url: str) -> str:
    """Upgrade plain postgresql:// URLs to the asyncpg driver SQLAlchemy needs"""
    if db_url.startswith("postgresql://") and "+asyncpg" not in db_url:
        logger.info("Normalizing DATABASE_URL for async Postgres: using asyncpg driver")
        return db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def build_engine(db_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Create an async engine for the configured (or given) database URL"""
    return create_async_engine(
        normalize_database_url(db_url or settings.DATABASE_URL),
        echo=settings.DEBUG,
        future=True,
        **kwargs,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create an async session factory bound to an engine"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False
    )


# Base class for models
Base = declarative_base()


async def init_db(bind: AsyncEngine):
    """Initialize database - create tables"""
    from app.database.models import Call, CallNote, User

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized")
