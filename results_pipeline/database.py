"""
results_pipeline/database.py
Async database engine, session factory and schema bootstrap
"""
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker

from results_pipeline.config import settings
from results_pipeline.orm.base import Base
import results_pipeline.orm  # ensures all models are registered

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with pool settings suited to the dialect."""
    if "sqlite" in database_url.lower():
        # SQLite: busy timeout so concurrent judge upserts wait instead of failing
        return create_async_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={
                "timeout": 30.0,
            }
        )
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
        pool_recycle=3600,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(DATABASE_URL)
AsyncSessionLocal = build_session_factory(engine)


async def get_db():
    """Dependency for getting async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: AsyncEngine = None):
    """Create all tables that do not exist yet."""
    bind = bind or engine
    logger.info("Initializing database...")
    logger.info(f"Database dialect: {bind.url.get_backend_name()}")

    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ Database initialization complete")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
