"""Database connection and session management."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.utils.config import DatabaseSettings, get_settings
from src.utils.logging import get_logger

from .models import Base

logger = get_logger(__name__)


class DatabaseManager:
    """Catalog database connection and session manager."""

    def __init__(self, database: Optional[DatabaseSettings] = None) -> None:
        self.database = database or get_settings().database
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def dialect_name(self) -> str:
        """Name of the SQL dialect behind the engine (``postgresql``, ``sqlite``...)."""
        return self.engine.dialect.name

    @property
    def engine(self) -> AsyncEngine:
        """Get database engine, creating if necessary."""
        if self._engine is None:
            engine_kwargs = {"echo": self.database.echo, "pool_pre_ping": True}
            if not self.database.is_sqlite:
                engine_kwargs.update(
                    pool_size=self.database.pool_size,
                    max_overflow=self.database.max_overflow,
                    pool_recycle=3600,
                )
            self._engine = create_async_engine(self.database.url, **engine_kwargs)
            logger.info(
                "Database engine created",
                extra={'extra_fields': {'dialect': self._engine.dialect.name}}
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get session factory, creating if necessary."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=True,
            )
        return self._session_factory

    async def create_tables(self) -> None:
        """Create all catalog tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def close(self) -> None:
        """Close database connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session with automatic cleanup."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
