"""Database engine and session factory for the remote reports table"""
import asyncio

import structlog
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker

logger = structlog.get_logger()


def normalize_database_url(url: str) -> str:
    """Force the async driver for plain postgres URLs"""
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    url = normalize_database_url(url)

    if url.startswith("postgresql+asyncpg://"):
        # SSL is required for Supabase connections
        # statement_cache_size=0 is required for pgbouncer/Supabase pooler
        return create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            connect_args={
                "ssl": "require",
                "statement_cache_size": 0,
                "server_settings": {"application_name": "qservice-backend"},
            },
        )

    return create_async_engine(url, echo=echo)


def create_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_schema(engine: AsyncEngine, max_retries: int = 5, retry_delay: float = 2) -> None:
    """Create the reports table if it does not exist yet"""
    from domain.models import DamageReportRow  # noqa: F401 - registers the table

    for attempt in range(1, max_retries + 1):
        try:
            logger.info("database_connect_attempt", attempt=attempt, max_retries=max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("database_initialized")
            return
        except Exception as e:
            if attempt < max_retries:
                logger.warning("database_connect_failed", attempt=attempt, error=str(e))
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.error("database_unreachable", attempts=max_retries, error=str(e))
                raise
