from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from garage.config import settings
import structlog

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


def _get_db_url() -> str:
    """Strip sslmode from URL since asyncpg uses connect_args for SSL."""
    url = settings.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL is not configured")
    url = url.replace("?sslmode=require", "").replace("&sslmode=require", "")
    return url


@lru_cache()
def get_engine() -> AsyncEngine:
    # Built on first use so importing the engine never needs a database.
    return create_async_engine(
        _get_db_url(),
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        get_engine(), class_=AsyncSession, expire_on_commit=False
    )


@asynccontextmanager
async def session_scope():
    """Session that commits on success and rolls back on any error."""
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db():
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_engine.cache_clear()
        logger.info("db_disconnected")
