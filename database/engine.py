import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from core.config import settings

logger = logging.getLogger(__name__)

db_engine = create_async_engine(settings.database_url, echo=settings.database_echo)


# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# Function to initialize the database (create tables)
async def init_db():
    # Register models on Base.metadata before create_all
    import database.models  # noqa: F401

    logger.info(f"Initializing database schema on {db_engine.url.render_as_string()}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()
