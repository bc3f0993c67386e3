"""Database abstraction layer using SQLAlchemy 2.0 async.

Provides the declarative base, engine and session management used by the
SQL-backed document gateway. SQLite (aiosqlite) is the default driver.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from gatehouse.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class DatabaseManager:
    """Database connection and session manager.

    Owns the async engine and session factory for one database URL.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        """Initialize the database manager.

        Args:
            database_url: SQLAlchemy async URL.
            echo: Log emitted SQL.
        """
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and ":memory:" in self.database_url

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the database engine."""
        if self._engine is None:
            kwargs: dict = {"echo": self.echo}
            if self.is_sqlite:
                kwargs["connect_args"] = {"check_same_thread": False}
            if self.is_memory:
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
            self._engine = create_async_engine(self.database_url, **kwargs)
            logger.info(
                "Database engine created",
                database_url=self._engine.url.render_as_string(hide_password=True),
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_factory

    def ensure_sqlite_directory(self) -> None:
        """Create the parent directory of a file-backed SQLite database."""
        if not self.is_sqlite or self.is_memory:
            return
        db_path = Path(self.database_url.split(":///")[-1])
        db_path.parent.mkdir(parents=True, exist_ok=True)

    async def create_tables(self) -> None:
        """Create all tables registered on Base.metadata."""
        from gatehouse.infrastructure.persistence.models import DocumentModel  # noqa: F401

        self.ensure_sqlite_directory()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_tables(self) -> None:
        """Drop all tables. Only use in testing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Database tables dropped")

    async def disconnect(self) -> None:
        """Dispose the engine and all pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine disposed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a session that is rolled back on error and always closed."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def check_connection(self) -> bool:
        """Check if the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database connection check failed", error=str(e))
            return False
