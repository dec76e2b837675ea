"""
zgames/database.py
Database configuration: async engine, session factory and table creation.
"""
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker

from zgames.config.settings import settings
# Import Base from orm.base and load every model so the registry is complete
from zgames.orm.base import Base
import zgames.orm  # noqa: F401

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str, **overrides) -> AsyncEngine:
    """
    Build an async engine with pool settings suited to the backend.

    SQLite (dev/tests) gets a busy timeout so concurrent writers wait on
    each other instead of failing immediately; foreign keys are switched on
    so cascades behave like PostgreSQL.
    """
    if "sqlite" in database_url.lower():
        options = dict(
            echo=False,
            future=True,
            connect_args={
                "timeout": 30.0,   # SQLite busy timeout in seconds
            }
        )
        options.update(overrides)
        engine = create_async_engine(database_url, **options)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    # PostgreSQL: Use standard pool with larger size
    options = dict(
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=20,           # Base pool size
        max_overflow=30,        # Additional connections under load
        pool_timeout=30,        # Wait up to 30s for connection
        pool_recycle=3600,      # Recycle connections after 1 hour
    )
    options.update(overrides)
    return create_async_engine(database_url, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine_for_url(DATABASE_URL)
AsyncSessionLocal = create_session_factory(engine)


async def get_db(request: Request):
    """
    Dependency for getting async database session.

    Uses the session factory wired into the app so HTTP reads see the same
    database the score recorder writes to.
    """
    session_factory = getattr(request.app.state, "session_factory", None) or AsyncSessionLocal
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: Optional[AsyncEngine] = None):
    """
    Initialize database: create all tables that do not exist yet.
    """
    bind = bind or engine
    logger.info("Initializing database...")

    try:
        logger.info(f"Database dialect: {bind.url.get_backend_name()}")
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ Database initialization complete")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db(bind: Optional[AsyncEngine] = None):
    """Close database connection"""
    await (bind or engine).dispose()
    logger.info("Database connection closed")
